"""Build-server gateway adapters."""

from teamcity_exporter.adapters.gateway.teamcity import GatewayError, TeamCityClient

__all__ = ["GatewayError", "TeamCityClient"]
