"""
Resource Type Catalogue
Defines the six Azure resource types the portal can provision, the form fields
each one exposes and which of those fields may change after creation.
Used by the lifecycle service (validation, immutable-field checks), the
Terraform generator and the /resource-types endpoint.
"""

AZURE_REGIONS = [
    "East US", "East US 2", "West US", "West US 2", "West Europe", "North Europe",
    "Southeast Asia", "Australia East", "UK South", "Canada Central", "Japan East",
]

RESOURCE_TYPES = {
    "vm": {
        "label": "Virtual Machine",
        "icon": "🖥️",
        "updatableFields": ["vmSize", "diskType", "osDiskSizeGb"],
        "fields": [
            {"name": "name", "label": "VM Name", "type": "text", "required": True, "placeholder": "my-vm-prod-01", "immutable": True},
            {"name": "location", "label": "Azure Region", "type": "select", "required": True, "options": AZURE_REGIONS, "immutable": True},
            {"name": "vmSize", "label": "VM Size", "type": "select", "options": ["Standard_B1s", "Standard_B2s", "Standard_D2s_v3", "Standard_D4s_v3", "Standard_E4s_v3", "Standard_F4s_v2"]},
            {"name": "adminUsername", "label": "Admin Username", "type": "text", "placeholder": "azureuser", "immutable": True},
            {"name": "diskType", "label": "OS Disk Type", "type": "select", "options": ["Standard_LRS", "Premium_LRS", "StandardSSD_LRS"]},
            {"name": "osDiskSizeGb", "label": "OS Disk Size GB", "type": "number", "placeholder": "30"},
        ],
    },
    "storage": {
        "label": "Storage Account",
        "icon": "🗄️",
        "updatableFields": ["tier", "replication", "versioning", "retentionDays"],
        "fields": [
            {"name": "name", "label": "Account Name", "type": "text", "required": True, "placeholder": "mystorageaccount", "immutable": True},
            {"name": "location", "label": "Azure Region", "type": "select", "required": True, "options": AZURE_REGIONS, "immutable": True},
            {"name": "tier", "label": "Tier", "type": "select", "options": ["Standard", "Premium"]},
            {"name": "replication", "label": "Replication", "type": "select", "options": ["LRS", "GRS", "ZRS", "RAGRS", "GZRS"]},
            {"name": "versioning", "label": "Versioning", "type": "select", "options": ["true", "false"]},
            {"name": "retentionDays", "label": "Retention Days", "type": "number", "placeholder": "7"},
        ],
    },
    "aks": {
        "label": "AKS Cluster",
        "icon": "☸️",
        "updatableFields": ["nodeCount", "vmSize", "k8sVersion", "minNodes", "maxNodes"],
        "fields": [
            {"name": "name", "label": "Cluster Name", "type": "text", "required": True, "placeholder": "my-aks-cluster", "immutable": True},
            {"name": "location", "label": "Azure Region", "type": "select", "required": True, "options": AZURE_REGIONS, "immutable": True},
            {"name": "nodeCount", "label": "Node Count", "type": "number", "placeholder": "2"},
            {"name": "vmSize", "label": "Node VM Size", "type": "select", "options": ["Standard_D2_v2", "Standard_D4_v2", "Standard_D8_v2", "Standard_DS3_v2"]},
            {"name": "k8sVersion", "label": "K8s Version", "type": "select", "options": ["1.28", "1.27", "1.26"]},
            {"name": "autoScaling", "label": "Auto Scaling", "type": "select", "options": ["false", "true"]},
            {"name": "minNodes", "label": "Min Nodes", "type": "number", "placeholder": "1"},
            {"name": "maxNodes", "label": "Max Nodes", "type": "number", "placeholder": "5"},
        ],
    },
    "sql": {
        "label": "SQL Database",
        "icon": "🗃️",
        "updatableFields": ["sku", "maxSizeGb"],
        "fields": [
            {"name": "name", "label": "DB Name", "type": "text", "required": True, "placeholder": "mydb", "immutable": True},
            {"name": "location", "label": "Region", "type": "select", "required": True, "options": AZURE_REGIONS, "immutable": True},
            {"name": "adminLogin", "label": "Admin Login", "type": "text", "placeholder": "sqladmin", "immutable": True},
            {"name": "sku", "label": "SKU", "type": "select", "options": ["Basic", "S0", "S1", "S2", "P1", "P2"]},
            {"name": "maxSizeGb", "label": "Max Size GB", "type": "number", "placeholder": "2"},
        ],
    },
    "keyvault": {
        "label": "Key Vault",
        "icon": "🔐",
        "updatableFields": ["softDeleteRetention", "purgeProtection", "networkDefaultAction"],
        "fields": [
            {"name": "name", "label": "Vault Name", "type": "text", "required": True, "placeholder": "my-keyvault", "immutable": True},
            {"name": "location", "label": "Region", "type": "select", "required": True, "options": AZURE_REGIONS, "immutable": True},
            {"name": "sku", "label": "SKU", "type": "select", "options": ["standard", "premium"]},
            {"name": "softDeleteRetention", "label": "Soft Delete Days", "type": "number", "placeholder": "7"},
            {"name": "purgeProtection", "label": "Purge Protection", "type": "select", "options": ["false", "true"]},
            {"name": "networkDefaultAction", "label": "Network Default", "type": "select", "options": ["Allow", "Deny"]},
        ],
    },
    "vnet": {
        "label": "Virtual Network",
        "icon": "🌐",
        "updatableFields": ["dnsServers"],
        "fields": [
            {"name": "name", "label": "VNet Name", "type": "text", "required": True, "placeholder": "my-vnet", "immutable": True},
            {"name": "location", "label": "Region", "type": "select", "required": True, "options": AZURE_REGIONS, "immutable": True},
            {"name": "addressSpace", "label": "Address Space", "type": "text", "placeholder": "10.0.0.0/16", "immutable": True},
            {"name": "dnsServers", "label": "DNS Servers", "type": "text", "placeholder": "168.63.129.16, 8.8.8.8"},
        ],
    },
}


def is_known_resource_type(resource_type: str) -> bool:
    return resource_type in RESOURCE_TYPES


def get_immutable_fields(resource_type: str) -> set:
    """Field names that cannot change once the resource exists"""
    definition = RESOURCE_TYPES.get(resource_type, {})
    return {f["name"] for f in definition.get("fields", []) if f.get("immutable")}


def get_number_fields(resource_type: str) -> set:
    definition = RESOURCE_TYPES.get(resource_type, {})
    return {f["name"] for f in definition.get("fields", []) if f.get("type") == "number"}
