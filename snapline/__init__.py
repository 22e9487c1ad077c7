"""
Snapline - deployment pipelines for managed Node-RED instances and edge devices.

Promotes configuration snapshots through ordered pipeline stages, re-keying
credentials for each target and tracking in-flight deployments.
"""

__version__ = "0.1.0"
