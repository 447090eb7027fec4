"""
ArgoDeploy - Hub and spoke ArgoCD deployment tool
"""

__version__ = "0.1.0"

from .core import ArgoDeployer, DeployerError

__all__ = ["ArgoDeployer", "DeployerError"]
