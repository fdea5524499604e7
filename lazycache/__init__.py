from lazycache._cache import (
    CacheOptions as CacheOptions,
    LazyCache as LazyCache,
    Lookup as Lookup,
    PreRequirements as PreRequirements,
    set_expiration_header as set_expiration_header,
)
from lazycache._exceptions import (
    CacheControlError as CacheControlError,
    ExpirationError as ExpirationError,
    ParseError as ParseError,
    ValidationError as ValidationError,
)
from lazycache._freshness import (
    FreshnessDecision as FreshnessDecision,
    RequestDirectives as RequestDirectives,
    evaluate as evaluate,
)
from lazycache._headers import (
    CacheControl as CacheControl,
    Headers as Headers,
    parse_cache_control as parse_cache_control,
)
from lazycache._keygen import BaseKeyGenerator as BaseKeyGenerator, DefaultKeyGenerator as DefaultKeyGenerator
from lazycache._models import (
    CacheableResponse as CacheableResponse,
    CacheEntry as CacheEntry,
    Request as Request,
    RequestMetadata as RequestMetadata,
    Response as Response,
    ResponseMetadata as ResponseMetadata,
)
from lazycache._refresh import RefreshCoordinator as RefreshCoordinator, RequestExecutor as RequestExecutor
from lazycache._serializers import BaseSerializer as BaseSerializer, JSONSerializer as JSONSerializer
from lazycache._storages import (
    BaseStorage as BaseStorage,
    InMemoryStorage as InMemoryStorage,
    RedisStorage as RedisStorage,
)
from lazycache._utils import BaseClock as BaseClock, Clock as Clock

__all__ = (
    # Cache
    "LazyCache",
    "CacheOptions",
    "Lookup",
    "PreRequirements",
    "set_expiration_header",
    # Freshness
    "FreshnessDecision",
    "RequestDirectives",
    "evaluate",
    # Refresh
    "RefreshCoordinator",
    "RequestExecutor",
    # Models
    "Request",
    "Response",
    "CacheableResponse",
    "CacheEntry",
    "RequestMetadata",
    "ResponseMetadata",
    ## Headers
    "Headers",
    "CacheControl",
    "parse_cache_control",
    # Key generators
    "BaseKeyGenerator",
    "DefaultKeyGenerator",
    # Storages
    "BaseStorage",
    "InMemoryStorage",
    "RedisStorage",
    # Serializers
    "BaseSerializer",
    "JSONSerializer",
    # Clocks
    "BaseClock",
    "Clock",
    # Exceptions
    "CacheControlError",
    "ExpirationError",
    "ParseError",
    "ValidationError",
)
