# dinghy

Track how pipeline definition files (dinghyfiles) depend on the modules
they include, so that when a module changes you can find every root file
that has to be rebuilt.

## Install

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Dependency stores

The stores share the same operations: `set_deps(parent, deps)` records the
direct dependencies of a file, `get_roots(url)` returns the top-level files
that reach `url`, and `set_raw_data` / `get_raw_data` deal with a file's
content.

### In memory: `dinghy.memory_cache`

`MemoryCache` is a `dict` mapping URLs to `Node` objects, each holding its
`parents` and `children`. `set_deps` replaces a file's children, unlinking
any that are no longer listed.

```python
from dinghy.memory_cache import MemoryCache

cache = MemoryCache()
cache.set_deps("df1", ["mod1", "mod2"])
cache.set_deps("mod1", ["mod3"])

upstream, roots = cache.upstream_urls("mod3")
print(upstream)                 # ['mod1', 'df1']
print(roots)                    # ['df1']
print(cache.get_roots("mod3"))  # ['df1']
```

An unknown URL gives empty lists. Raw data is not kept in memory:
`set_raw_data` only checks its arguments and `get_raw_data` always returns
`""`. `dump()` logs the whole graph at debug level.

### Redis: `dinghy.redis_options`, `dinghy.redis_cache`

```python
from dinghy.redis_options import RedisSettings, new_redis_options
from dinghy.redis_cache import RedisCache, compile_key

options = new_redis_options(RedisSettings(base_url="redis://localhost:6379"))
cache = RedisCache(options.create_client())
cache.set_deps("df1", ["mod1"])
print(cache.get_roots("mod1"))          # ['df1']
print(compile_key("children", "df1"))   # Armory:dinghy:children:df1
```

`new_redis_options` strips the `redis://` or `rediss://` prefix; a
`rediss://` URL turns on TLS (minimum TLS 1.2). Clients retry up to five
times.

`RedisCache` keeps a children set and a parents set per URL and the raw
content under `Armory:dinghy:rawdata:<url>`. `get_raw_data` raises
`KeyError` when nothing is stored. `get_children(url)` lists direct
dependencies, `get_all_dinghyfiles()` lists every URL that has dependencies
but no parents, and `clear()` removes all parent and child sets.

`start_monitor(interval)` pings the server in a background thread; after five
failures in a row it calls the `on_failure` callback given to the
constructor, which by default raises `SIGINT` in the process.
`stop_monitor()` ends it.

`RedisCacheReadOnly` reads the same data; `set_deps`, `set_raw_data` and
`clear` change nothing and are only counted in `ignored_writes`.

### SQL: `dinghy.sql_store`

```python
from dinghy.sql_store import SQLConfig, new_mysql_client

password = "password"
client = new_mysql_client(
    SQLConfig(db_url="localhost:3306", user="user", password=password, db_name="dinghy")
)
client.set_deps("df1", ["mod1"])
print(client.get_roots("mod1"))   # ['df1']
```

`SQLConfig.dsn()` builds a `mysql+pymysql` connection string, so the PyMySQL
driver must be installed to reach MySQL. `SQLClient` also accepts any
SQLAlchemy `Engine`. It works on the `fileurls` and `fileurl_childs` tables
(mapped by `Fileurl` and `FileurlChild`; `ExecutionRecord` maps
`executions`); it does not create them.

In this store `set_deps` only adds links and never removes existing ones,
`get_roots` returns a URL with no parents as its own root, `set_raw_data`
ignores URLs that are not recorded, and `get_raw_data` returns `""` for
them. `new_mysql_client` checks the connection and starts the health
monitor, which behaves like the Redis one. `SQLReadOnly` wraps a client and
only counts writes.

## Other helpers

- `dinghy.local_cache.LocalCache`: a thread-safe string map with `add`,
  `get` (returning `""` for a missing key) and `len()`.
- `dinghy.debug_http.new_interceptor_session(logger, insecure, cert, ca_bundle)`:
  a `requests` session whose `InterceptorAdapter` logs each request
  (`GET --> url`) and response status (`200 <-- url`) when `logger` is at
  debug level.

## What this package does not do

It is a library of stores and helpers only. It has no command, runs no web
server or webhook endpoint, does not fetch or render dinghyfiles, and does
not create or update pipelines anywhere.