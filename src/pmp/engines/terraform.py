"""Terraform engine definition."""

from pmp.engines.base import Engine

TERRAFORM = Engine(
    name="Terraform",
    cli_command="terraform",
    install_info="https://developer.hashicorp.com/terraform/install",
)
