"""Deployment workflow phases, executed in order by DeploymentPipeline."""
