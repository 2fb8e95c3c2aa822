"""
k8s-eagle - Kubernetes Deployment Change Relay

Watches a fixed set of Deployments and forwards every lifecycle change
to externally configured webhooks.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- Data flows one way: config -> supervisor -> watch -> dispatch

Modules:
- config: Watcher document, secrets directory, resolution
- watch: Deployment watch stream and event translation
- dispatch: Concurrent webhook fan-out
- supervisor: One isolated watch loop per watcher
- health: Liveness and status endpoint
"""

__version__ = "1.0.0"
