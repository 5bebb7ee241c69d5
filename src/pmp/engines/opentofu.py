"""OpenTofu engine definition."""

from pmp.engines.base import Engine

OPENTOFU = Engine(
    name="OpenTofu",
    cli_command="tofu",
    install_info="https://opentofu.org/docs/intro/install/",
)
