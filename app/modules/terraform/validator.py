from typing import Dict, List, Tuple
import logging

import hcl2

logger = logging.getLogger(__name__)


class TerraformValidator:
    """Validate rendered Terraform files before they are written or previewed"""

    @staticmethod
    def validate(files: Dict[str, str]) -> Tuple[bool, List[str]]:
        """
        Validate a workspace given as file name -> content.
        Returns (is_valid, list_of_errors_or_warnings)
        """
        errors = []
        warnings = []

        tf_files = [name for name in files if name.endswith('.tf')]
        if not tf_files:
            errors.append("No .tf files in workspace")
            return False, errors

        if 'main.tf' not in tf_files:
            warnings.append("No main.tf file found")

        for tf_file in tf_files:
            try:
                parsed = hcl2.loads(files[tf_file])
            except Exception as e:
                errors.append(f"Syntax error in {tf_file}: {str(e)}")
                continue

            if tf_file == 'main.tf' and 'resource' not in parsed:
                warnings.append("main.tf contains no resource blocks")

            for var_block in parsed.get('variable', []):
                if not isinstance(var_block, dict):
                    continue
                for var_name, var_config in var_block.items():
                    if not isinstance(var_config, dict):
                        continue
                    if 'description' not in var_config:
                        warnings.append(f"Variable '{var_name}' is missing a description")
                    if 'type' not in var_config:
                        warnings.append(f"Variable '{var_name}' is missing a type definition")

        all_issues = errors + warnings
        return len(errors) == 0, all_issues
