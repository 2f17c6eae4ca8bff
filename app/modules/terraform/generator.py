"""
Terraform rendering for the six portal resource types.

Each deployment gets its own workspace with main.tf (provider, azurerm backend,
resource group and the resource blocks), variables.tf and outputs.tf. Every
taggable resource carries the full tag set from build_tags().
"""
import json
import re
from typing import Any, Callable, Dict, Optional

from app.core.clock import utc_now

MANAGED_BY = "terraform-portal"

# Recomputed by build_tags on every render; created_at is carried over instead
DERIVED_TAGS = ("ticket", "environment", "managed_by", "deployment_id")

PROVIDER_BLOCK = """terraform {{
  required_version = ">= 1.6.0"
  required_providers {{
    azurerm = {{
      source  = "hashicorp/azurerm"
      version = "~> 3.80"
    }}
  }}
{backend}
}}

provider "azurerm" {{
  features {{
    resource_group {{
      prevent_deletion_if_contains_resources = false
    }}
    key_vault {{
      purge_soft_delete_on_destroy = true
    }}
  }}
}}
"""


def build_tags(
    ticket_number: Optional[str],
    environment: Optional[str],
    deployment_id: str,
    extra_tags: Optional[Dict[str, Any]] = None,
    clock: Callable[[], str] = utc_now,
) -> Dict[str, Any]:
    """Mandatory tags first; extra tags may override them (e.g. the original created_at)."""
    return {
        "ticket": ticket_number,
        "environment": environment or "dev",
        "managed_by": MANAGED_BY,
        "deployment_id": deployment_id,
        "created_at": clock(),
        **(extra_tags or {}),
    }


def hcl_escape(value: Any) -> str:
    """
    Escape a value for use between the quotes of an HCL string literal.
    Quotes, backslashes and control characters use JSON escapes (HCL accepts
    the same ones); template sequences are doubled so they render literally.
    """
    escaped = json.dumps(str(value))[1:-1]
    return escaped.replace("${", "$${").replace("%{", "%%{")


def _escape_config(config: Dict[str, Any]) -> Dict[str, Any]:
    escaped = {}
    for key, value in config.items():
        if isinstance(value, str):
            escaped[key] = hcl_escape(value)
        elif isinstance(value, list):
            escaped[key] = [hcl_escape(v) for v in value]
        else:
            escaped[key] = value
    return escaped


def _number(value: Any, default: int) -> int:
    """Numeric form fields arrive as strings; anything unparsable renders the default."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return int(float(str(value)))
    except (TypeError, ValueError, OverflowError):
        return default


def _string_list(values: list) -> str:
    return "[" + ", ".join(f'"{v}"' for v in values) + "]"


def build_backend_block(backend: Optional[Dict[str, str]]) -> str:
    if not backend:
        return "  # backend configured via -backend-config flags at init time"
    return (
        '  backend "azurerm" {\n'
        f'    resource_group_name  = "{hcl_escape(backend["resource_group_name"])}"\n'
        f'    storage_account_name = "{hcl_escape(backend["storage_account_name"])}"\n'
        f'    container_name       = "{hcl_escape(backend["container_name"])}"\n'
        f'    key                  = "{hcl_escape(backend["key"])}"\n'
        "  }"
    )


def _tag_key(key: Any) -> str:
    key = str(key)
    if re.fullmatch(r"[A-Za-z_][A-Za-z0-9_-]*", key):
        return key
    return f'"{hcl_escape(key)}"'


def _tags_block(tags: Dict[str, Any], indent: str = "  ") -> str:
    lines = [f'{indent}  {_tag_key(k)} = "{hcl_escape("" if v is None else v)}"' for k, v in tags.items()]
    return f"{indent}tags = {{\n" + "\n".join(lines) + f"\n{indent}}}"


def _flag(value: Any) -> str:
    """Form selects submit booleans as the strings 'true'/'false'."""
    return "true" if str(value).lower() == "true" else "false"


def _resource_group(rg_name: str, location: str, tags: str) -> str:
    return f"""
resource "azurerm_resource_group" "rg" {{
  name     = "{rg_name}"
  location = "{location}"
{tags}
}}
"""


def _vm(config: Dict[str, Any], tags: str) -> str:
    name = config["name"]
    admin = config.get("adminUsername") or "azureuser"
    return f"""
resource "azurerm_virtual_network" "vnet" {{
  name                = "vnet-{name}"
  address_space       = ["10.0.0.0/16"]
  location            = azurerm_resource_group.rg.location
  resource_group_name = azurerm_resource_group.rg.name
{tags}
}}

resource "azurerm_subnet" "subnet" {{
  name                 = "snet-{name}"
  resource_group_name  = azurerm_resource_group.rg.name
  virtual_network_name = azurerm_virtual_network.vnet.name
  address_prefixes     = ["10.0.1.0/24"]
}}

resource "azurerm_network_interface" "nic" {{
  name                = "nic-{name}"
  location            = azurerm_resource_group.rg.location
  resource_group_name = azurerm_resource_group.rg.name
  ip_configuration {{
    name                          = "internal"
    subnet_id                     = azurerm_subnet.subnet.id
    private_ip_address_allocation = "Dynamic"
  }}
{tags}
}}

resource "azurerm_linux_virtual_machine" "vm" {{
  name                            = "{name}"
  resource_group_name             = azurerm_resource_group.rg.name
  location                        = azurerm_resource_group.rg.location
  size                            = "{config.get("vmSize") or "Standard_B2s"}"
  admin_username                  = "{admin}"
  network_interface_ids           = [azurerm_network_interface.nic.id]
  disable_password_authentication = true

  admin_ssh_key {{
    username   = "{admin}"
    public_key = var.ssh_public_key
  }}

  os_disk {{
    caching              = "ReadWrite"
    storage_account_type = "{config.get("diskType") or "Standard_LRS"}"
    disk_size_gb         = {_number(config.get("osDiskSizeGb"), 30)}
  }}

  source_image_reference {{
    publisher = "Canonical"
    offer     = "0001-com-ubuntu-server-focal"
    sku       = "20_04-lts"
    version   = "latest"
  }}

{tags}
}}
"""


def storage_account_name(name: str) -> str:
    """Storage account names: lowercase alphanumerics, at most 24 chars."""
    return re.sub(r"[^a-z0-9]", "", str(name).lower())[:24]


def _storage(config: Dict[str, Any], tags: str) -> str:
    return f"""
resource "azurerm_storage_account" "storage" {{
  name                      = "{storage_account_name(config["name"])}"
  resource_group_name       = azurerm_resource_group.rg.name
  location                  = azurerm_resource_group.rg.location
  account_tier              = "{config.get("tier") or "Standard"}"
  account_replication_type  = "{config.get("replication") or "LRS"}"
  enable_https_traffic_only = true
  min_tls_version           = "TLS1_2"

  blob_properties {{
    versioning_enabled = {_flag(config.get("versioning"))}
    delete_retention_policy {{
      days = {_number(config.get("retentionDays"), 7)}
    }}
  }}

{tags}
}}
"""


def _aks(config: Dict[str, Any], tags: str) -> str:
    auto_scaling = _flag(config.get("autoScaling"))
    min_count = _number(config.get("minNodes"), 1) if auto_scaling == "true" else "null"
    max_count = _number(config.get("maxNodes"), 5) if auto_scaling == "true" else "null"
    return f"""
resource "azurerm_kubernetes_cluster" "aks" {{
  name                = "{config["name"]}"
  location            = azurerm_resource_group.rg.location
  resource_group_name = azurerm_resource_group.rg.name
  dns_prefix          = "{config["name"]}"
  kubernetes_version  = "{config.get("k8sVersion") or "1.28"}"

  default_node_pool {{
    name                = "default"
    node_count          = {_number(config.get("nodeCount"), 2)}
    vm_size             = "{config.get("vmSize") or "Standard_D2_v2"}"
    os_disk_size_gb     = 50
    enable_auto_scaling = {auto_scaling}
    min_count           = {min_count}
    max_count           = {max_count}
  }}

  identity {{
    type = "SystemAssigned"
  }}

  network_profile {{
    network_plugin    = "azure"
    load_balancer_sku = "standard"
  }}

{tags}
}}
"""


def _sql(config: Dict[str, Any], tags: str) -> str:
    return f"""
resource "azurerm_mssql_server" "sql" {{
  name                         = "{config["name"]}-server"
  resource_group_name          = azurerm_resource_group.rg.name
  location                     = azurerm_resource_group.rg.location
  version                      = "12.0"
  administrator_login          = "{config.get("adminLogin") or "sqladmin"}"
  administrator_login_password = var.sql_admin_password
  minimum_tls_version          = "1.2"
{tags}
}}

resource "azurerm_mssql_database" "db" {{
  name        = "{config["name"]}"
  server_id   = azurerm_mssql_server.sql.id
  collation   = "SQL_Latin1_General_CP1_CI_AS"
  sku_name    = "{config.get("sku") or "Basic"}"
  max_size_gb = {_number(config.get("maxSizeGb"), 2)}
{tags}
}}

resource "azurerm_mssql_firewall_rule" "allow_azure" {{
  name             = "AllowAzureServices"
  server_id        = azurerm_mssql_server.sql.id
  start_ip_address = "0.0.0.0"
  end_ip_address   = "0.0.0.0"
}}
"""


def _keyvault(config: Dict[str, Any], tags: str) -> str:
    return f"""
data "azurerm_client_config" "current" {{}}

resource "azurerm_key_vault" "kv" {{
  name                       = "{config["name"]}"
  location                   = azurerm_resource_group.rg.location
  resource_group_name        = azurerm_resource_group.rg.name
  tenant_id                  = data.azurerm_client_config.current.tenant_id
  sku_name                   = "{config.get("sku") or "standard"}"
  soft_delete_retention_days = {_number(config.get("softDeleteRetention"), 7)}
  purge_protection_enabled   = {_flag(config.get("purgeProtection"))}
  enable_rbac_authorization  = true

  network_acls {{
    default_action = "{config.get("networkDefaultAction") or "Allow"}"
    bypass         = "AzureServices"
  }}

{tags}
}}
"""


def parse_dns_servers(value: Any) -> list:
    if not value:
        return []
    if isinstance(value, list):
        return [str(s).strip() for s in value if str(s).strip()]
    return [s.strip() for s in str(value).split(",") if s.strip()]


def _vnet(config: Dict[str, Any], tags: str) -> str:
    return f"""
resource "azurerm_virtual_network" "vnet" {{
  name                = "{config["name"]}"
  address_space       = ["{config.get("addressSpace") or "10.0.0.0/16"}"]
  location            = azurerm_resource_group.rg.location
  resource_group_name = azurerm_resource_group.rg.name
  dns_servers         = {_string_list(parse_dns_servers(config.get("dnsServers")))}
{tags}
}}

resource "azurerm_subnet" "subnets" {{
  for_each             = {{ for s in var.subnets : s.name => s }}
  name                 = each.value.name
  resource_group_name  = azurerm_resource_group.rg.name
  virtual_network_name = azurerm_virtual_network.vnet.name
  address_prefixes     = [each.value.prefix]
}}

resource "azurerm_network_security_group" "nsg" {{
  name                = "nsg-{config["name"]}"
  location            = azurerm_resource_group.rg.location
  resource_group_name = azurerm_resource_group.rg.name
{tags}
}}
"""


RESOURCE_RENDERERS = {
    "vm": _vm,
    "storage": _storage,
    "aks": _aks,
    "sql": _sql,
    "keyvault": _keyvault,
    "vnet": _vnet,
}

VARIABLES = {
    "vm": """variable "ssh_public_key" {
  description = "SSH public key for VM admin access"
  type        = string
  sensitive   = true
  default     = "ssh-rsa PLACEHOLDER"
}
""",
    "sql": """variable "sql_admin_password" {
  description = "SQL Server administrator password"
  type        = string
  sensitive   = true
  default     = "P@ssw0rd123!ChangeMe"
}
""",
    "vnet": """variable "subnets" {
  description = "Subnets created inside the virtual network"
  type        = list(object({ name = string, prefix = string }))
  default = [
    { name = "snet-app", prefix = "10.0.1.0/24" },
    { name = "snet-data", prefix = "10.0.2.0/24" },
  ]
}
""",
}

OUTPUTS = {
    "vm": [("vm_id", "azurerm_linux_virtual_machine.vm.id", False),
           ("private_ip", "azurerm_network_interface.nic.private_ip_address", False)],
    "storage": [("storage_id", "azurerm_storage_account.storage.id", False),
                ("blob_endpoint", "azurerm_storage_account.storage.primary_blob_endpoint", False)],
    "aks": [("cluster_id", "azurerm_kubernetes_cluster.aks.id", False),
            ("kube_config", "azurerm_kubernetes_cluster.aks.kube_config_raw", True)],
    "sql": [("server_fqdn", "azurerm_mssql_server.sql.fully_qualified_domain_name", False),
            ("db_id", "azurerm_mssql_database.db.id", False)],
    "keyvault": [("vault_uri", "azurerm_key_vault.kv.vault_uri", False),
                 ("vault_id", "azurerm_key_vault.kv.id", False)],
    "vnet": [("vnet_id", "azurerm_virtual_network.vnet.id", False),
             ("address_space", "azurerm_virtual_network.vnet.address_space", False)],
}


def generate_main_tf(
    resource_type: str,
    config: Dict[str, Any],
    tags: Dict[str, Any],
    deployment_id: str,
    environment: Optional[str] = "dev",
    backend: Optional[Dict[str, str]] = None,
) -> str:
    """
    Render main.tf. Unknown resource types fall back to the VM layout.
    Every config and tag value is escaped before it reaches a string literal.
    """
    config = dict(config or {})
    config.setdefault("name", f"res-{deployment_id[:8]}")
    config = _escape_config(config)
    environment = hcl_escape(environment or "dev")
    tags_block = _tags_block(tags)
    provider = PROVIDER_BLOCK.format(backend=build_backend_block(backend))
    rg = _resource_group(
        f"rg-{config['name']}-{environment}",
        config.get("location") or "East US",
        tags_block,
    )
    renderer = RESOURCE_RENDERERS.get(resource_type, _vm)
    return provider + rg + renderer(config, tags_block)


def generate_variables_tf(resource_type: str) -> str:
    return VARIABLES.get(resource_type, "# No extra variables required\n")


def generate_outputs_tf(resource_type: str) -> str:
    outputs = OUTPUTS.get(resource_type)
    if not outputs:
        return "# No outputs defined\n"
    blocks = []
    for name, expression, sensitive in outputs:
        body = f"  value = {expression}\n"
        if sensitive:
            body += "  sensitive = true\n"
        blocks.append(f'output "{name}" {{\n{body}}}\n')
    return "\n".join(blocks)


def output_names(resource_type: str) -> list:
    return [name for name, _, _ in OUTPUTS.get(resource_type, [])]


def render_workspace(
    resource_type: str,
    config: Dict[str, Any],
    tags: Dict[str, Any],
    deployment_id: str,
    environment: Optional[str] = "dev",
    backend: Optional[Dict[str, str]] = None,
) -> Dict[str, str]:
    """File name -> content for a deployment workspace."""
    return {
        "main.tf": generate_main_tf(resource_type, config, tags, deployment_id, environment, backend),
        "variables.tf": generate_variables_tf(resource_type),
        "outputs.tf": generate_outputs_tf(resource_type),
    }
