# fluxcore

A library of pieces for a GitOps deployment agent:

- **Image references** (`fluxcore.image`): `parse_image_id` turns
  `host/namespace/image:tag` strings into an `ImageID`, filling in Docker Hub
  defaults (`index.docker.io`, `library`, `latest`). `ImageID` and `Image`
  round-trip through JSON (`to_json`, `image_id_from_json`,
  `image_from_json`), and `sort_by_created_desc` orders images with no
  creation time first, then newest first, ties broken by name.
- **Policies** (`fluxcore.policy`): the `Policy` enum, the immutable
  `PolicySet` and `ServiceMap`. `policy_set_from_json` reads a policy set
  given either as an object or as a list of policy names.
- **Jobs** (`fluxcore.job`): `Job`, `Status`, `StatusString`, an unbounded
  thread-safe `Queue` (`enqueue`, `dequeue`, `len()`, iteration over a
  snapshot) and a `StatusCache` that keeps the statuses of the most recent
  `size` jobs, evicting the oldest first.
- **HTTP helpers** (`fluxcore.transport`, `fluxcore.accept`,
  `fluxcore.errors`, `fluxcore.apierror`): a `Router` of named routes
  (`new_api_router`, `upstream_routes`, `deprecate_versions`), `make_url`
  for building request URLs, Accept-header negotiation
  (`negotiate_content_type`), `write_error`, `json_response` and
  `error_response`, which return `Response` objects, and `infer_endpoints`
  for pairing HTTP and websocket endpoints. `BaseError`, `Missing`,
  `UserConfigProblem` and `ServerException` carry help text for users;
  `APIError` carries an HTTP status.
- **Registry access** (`fluxcore.registry`, `fluxcore.client`,
  `fluxcore.cache`, `fluxcore.credentials`, `fluxcore.middleware`,
  `fluxcore.warming`): a `Registry` that fetches tags and manifests through
  clients from a factory, an in-memory `ExpiringCache`, the cache-backed
  `CachedRegistryClient` and `CacheClientFactory`, the `Remote` client
  adapter, credentials loaded from a Docker `config.json` with
  `credentials_from_file`, a per-host token-bucket `RateLimiter`
  (`limiter_for`, `RateLimitedTransport`), `WWWAuthenticateFixer` for
  unquoted `scope` values, timing wrappers (`InstrumentedRegistry`,
  `InstrumentedClient`), mocks for tests, and a `Warmer` that keeps the cache
  filled.
- **GitHub deploy keys** (`fluxcore.github`): `GithubClient.insert_deploy_key`
  removes any existing key named `flux-generated` and creates a new one.

## Install

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Examples

```python
from fluxcore.image import parse_image_id

image_id = parse_image_id("quay.io/weaveworks/foobar:baz")
image_id.host          # "quay.io"
image_id.repository()  # "quay.io/weaveworks/foobar"

parse_image_id("alpine").full_id()  # "index.docker.io/library/alpine:latest"
```

```python
from fluxcore.policy import Policy, PolicySet, policy_set_from_json

policies = PolicySet().add(Policy.IGNORE, Policy.LOCKED)
policies.contains(Policy.LOCKED)                                # True
policy_set_from_json('["ignore", "locked"]') == policies        # True
```

```python
from fluxcore.job import Job, Queue, Status, StatusCache, StatusString

jobs = Queue()
jobs.enqueue(Job("job 1"))
jobs.dequeue(block=False).id   # "job 1"

statuses = StatusCache(size=2)
statuses.set_status("job 1", Status(status_string=StatusString.RUNNING))
statuses.status("job 1").status_string   # StatusString.RUNNING
statuses.status("unknown")               # None
```

```python
from fluxcore.transport import infer_endpoints

infer_endpoints("https://example.com/api/flux")
# ("https://example.com/api/flux", "wss://example.com/api/flux")
```

```python
from datetime import timedelta

from fluxcore.cache import ExpiringCache
from fluxcore.client import CacheClientFactory
from fluxcore.credentials import no_credentials
from fluxcore.image import parse_image_id
from fluxcore.registry import Registry

cache = ExpiringCache()
factory = CacheClientFactory(no_credentials(), cache, timedelta(hours=1))
registry = Registry(factory, connections=4)
registry.get_repository(parse_image_id("alpine"))  # raises NotCachedError until warmed
```

## What this package does not do

- It has no command-line tool, daemon or HTTP server; the routing and
  response helpers produce values for a server you provide.
- The cache is in memory only (`ExpiringCache`); there is no memcached
  client.
- There is no built-in client for the registry HTTP API: `Remote` wraps an
  object you supply that provides `tags(repository)` and
  `manifest(repository, reference)`, and `WWWAuthenticateFixer` and
  `RateLimitedTransport` wrap any object with a `round_trip(request)` method.
- There are no websocket connections and no chat notifications.