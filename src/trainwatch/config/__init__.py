"""Application settings and the deployment environment registry."""
