"""forge-cli: command-line client for the World Forge service.

Every subcommand first resolves a *command context* (user, organization,
project) from local config, the current git checkout, and the remote API.
"""

from forge_cli.version import __version__

__all__: list[str] = ["__version__"]
