"""offcache -- an offline cache manager for a statically served site.

This package intercepts requests for one origin and keeps two cache
partitions on disk: a versioned *shell* partition holding the precached app
shell and every successful same-origin response, and a long-lived *fonts*
partition filled cache-first. When the network is unavailable the manager
answers from the shell partition, then from the offline page, then with a
synthetic 404, so callers always get a response.

Typical workflow::

    offcache --origin https://dagaz.example install   # precache + activate
    offcache fetch /blog --navigate                   # intercept one request
    offcache caches list                              # inspect partitions

Modules:
    manager: :class:`OfflineCacheManager`, the lifecycle and strategy executor.
    router: Pure routing decisions from events to actions.
    predicates: Named request predicates (origin, fonts, exclusions).
    events: Lifecycle events with ``wait_until`` handles.
    cache: Disk-backed cache partitions.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "0.1.0"
