"""Built-in CLI sub-commands for offcache.

* :mod:`~offcache.commands.lifecycle` -- ``install``, ``activate``,
  ``fetch`` and ``version``, registered directly on the root app.
* :mod:`~offcache.commands.caches` -- list, show, delete and clear cache
  partitions.
* :mod:`~offcache.commands.config` -- view and modify global settings.
"""
