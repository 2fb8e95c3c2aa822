"""
k8s-eagle modules.

Data flows one way through them:

    config      watcher document + secrets -> ResolvedWatcher list
    watch       event source, payload model and the per-watcher WatchLoop
    dispatch    concurrent webhook POSTs for each payload
    supervisor  one WatchLoop task per watcher, failure isolation, restarts
    health      /healthz, /status and /metrics over supervisor state

Each package re-exports its public names from __init__.py; other modules
import only those names.
"""
