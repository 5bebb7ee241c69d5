"""Base engine definition."""

import shutil
from dataclasses import dataclass


@dataclass(frozen=True)
class Engine:
    """Definition of an infrastructure-as-code engine."""

    name: str
    cli_command: str
    install_info: str
    common_file: str = "_common.tf"
    state_dir: str = ".terraform"  # Created by `init`; absent means init is needed

    def is_installed(self) -> bool:
        """Check if this engine's CLI command is available in PATH."""
        return shutil.which(self.cli_command) is not None

    def render_common_file(self, project_name: str, environment: str) -> str:
        """Return the support file written next to every rendered project."""
        return COMMON_TF.format(project=project_name, environment=environment)


# Applies every rendered Kubernetes manifest and exposes project metadata.
# Doubled braces are literal HCL braces.
COMMON_TF = """\
# Generated by pmp. Do not edit; re-created on every render.

terraform {{
  required_providers {{
    kubernetes = {{
      source = "hashicorp/kubernetes"
    }}
    helm = {{
      source = "hashicorp/helm"
    }}
    random = {{
      source = "hashicorp/random"
    }}
  }}
}}

variable "kubeconfig_path" {{
  type    = string
  default = "~/.kube/config"
}}

provider "kubernetes" {{
  config_path = var.kubeconfig_path
}}

provider "helm" {{
  kubernetes {{
    config_path = var.kubeconfig_path
  }}
}}

locals {{
  pmp_project     = "{project}"
  pmp_environment = "{environment}"
  pmp_manifests   = fileset(path.module, "manifests/*.yaml")
}}

resource "kubernetes_manifest" "pmp" {{
  for_each = local.pmp_manifests
  manifest = yamldecode(file("${{path.module}}/${{each.value}}"))
}}
"""
