"""
Basic usage examples for fluent_config package.

Layered sources are merged into one flat key map and bound onto typed settings.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, Field

from fluent_config import (
    BindingOptions,
    ConfigKey,
    ConfigurationBuilder,
    ConstraintTable,
    Range,
    bind,
    bind_document,
    get_or_default,
)


@dataclass
class ApiSettings:
    base_url: str
    timeout: Annotated[int, Range(1, 300)] = 30
    retries: int = 3


@dataclass
class Endpoint:
    name: str
    path: str = "/"


@dataclass
class ServiceSettings:
    endpoints: List[Endpoint] = field(default_factory=list)
    limits: Dict[str, int] = field(default_factory=dict)
    region: Annotated[Optional[str], ConfigKey("AwsRegion")] = None


class DatabaseSettings(BaseModel):
    host: str
    port: int = Field(default=5432, ge=1, le=65535)
    pool_size: int = 10


# =============================================================================
# Example 1: Build from in-memory values and bind a section
# =============================================================================
def example1_build_and_bind() -> None:
    result = (
        ConfigurationBuilder()
        .from_in_memory({"Api:BaseUrl": "https://api.example.com", "Api:Timeout": "60"})
        .required("Api:BaseUrl")
        .optional("Api:Retries", 5)
        .build_as(ApiSettings, section="Api")
    )

    print("Example 1 - Build and bind:")
    result.match(
        on_success=lambda settings: print(f"  settings: {settings}"),
        on_failure=lambda errors: print(f"  errors: {list(errors)}"),
    )


# =============================================================================
# Example 2: Every binding error is reported at once
# =============================================================================
def example2_all_errors() -> None:
    result = bind({"Api:Timeout": "abc"}, ApiSettings, section="Api")

    print("\nExample 2 - All errors:")
    for error in result.errors:
        print(f"  - {error}")


# =============================================================================
# Example 3: Lists, dictionaries and explicit keys
# =============================================================================
def example3_collections() -> None:
    config = {
        "Service:Endpoints__1__Name": "orders",
        "Service:Endpoints__0__Name": "users",
        "Service:Endpoints__0__Path": "/v1/users",
        "Service:Limits:reads": "100",
        "Service:AwsRegion": "eu-west-1",
    }
    settings = bind(config, ServiceSettings, section="Service").unwrap()

    print("\nExample 3 - Collections:")
    print(f"  endpoints: {[e.name for e in settings.endpoints]}")
    print(f"  limits: {settings.limits}")
    print(f"  region: {settings.region}")


# =============================================================================
# Example 4: Pydantic models and the document binder
# =============================================================================
def example4_pydantic() -> None:
    config = {"Db:Host": "localhost", "Db:Port": "70000"}

    print("\nExample 4 - Pydantic:")
    print(f"  field walking: {list(bind(config, DatabaseSettings, section='Db').errors)}")
    print(f"  document: {list(bind_document(config, DatabaseSettings, section='Db').errors)}")


# =============================================================================
# Example 5: Constraint table and flat-map accessors
# =============================================================================
def example5_constraints() -> None:
    table = ConstraintTable().constrain("Api:BaseUrl", lambda url: url.startswith("https://"), "must use https")
    result = bind({"Api:BaseUrl": "http://insecure"}, ApiSettings, BindingOptions(constraints=table), section="Api")

    print("\nExample 5 - Constraint table:")
    print(f"  errors: {list(result.errors)}")
    print(f"  retries or default: {get_or_default({}, 'Api:Retries', 3)}")


# =============================================================================
# Example 6: Async build with a per-source timeout
# =============================================================================
async def example6_async_build() -> None:
    builder = (
        ConfigurationBuilder()
        .from_environment(prefix="APP_")
        .from_in_memory({"Api:BaseUrl": "https://fallback.example.com"})
    )
    result = await builder.build_as_async(ApiSettings, section="Api", source_timeout=5.0)

    print("\nExample 6 - Async build:")
    print(f"  success: {result.is_success}")


# =============================================================================
# Run all examples
# =============================================================================
async def main() -> None:
    print("=== fluent_config Examples ===\n")

    example1_build_and_bind()
    example2_all_errors()
    example3_collections()
    example4_pydantic()
    example5_constraints()
    await example6_async_build()

    print("\n=== Examples Complete ===")


if __name__ == "__main__":
    asyncio.run(main())
