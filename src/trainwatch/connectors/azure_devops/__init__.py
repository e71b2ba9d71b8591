"""Azure DevOps REST connector."""

from trainwatch.connectors.azure_devops.client import AzureDevOpsClient

__all__ = ["AzureDevOpsClient"]
