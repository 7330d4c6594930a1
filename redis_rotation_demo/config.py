from dataclasses import dataclass
import os

from dotenv import load_dotenv

load_dotenv()

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


class ConfigError(ValueError):
    """Raised when the demo environment is misconfigured."""


@dataclass(frozen=True)
class DemoConfig:
    replication_group_id: str = "redisSingleAuthDemo"
    rbac_replication_group_id: str = "redisRbacRotatorDemo"
    rotation_days: int = 15
    deploy_single_auth: bool = False
    deploy_rbac: bool = True
    engine_version: str = "6.x"


def _parse_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    value = value.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _parse_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _parse_days(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        days = int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None
    if days <= 0:
        raise ConfigError(f"{name} must be positive, got {days}")
    return days


def load_demo_config() -> DemoConfig:
    """Read the demo settings from the environment (and an optional .env file)."""
    defaults = DemoConfig()
    config = DemoConfig(
        replication_group_id=_parse_str(
            "REPLICATION_GROUP_ID", defaults.replication_group_id
        ),
        rbac_replication_group_id=_parse_str(
            "RBAC_REPLICATION_GROUP_ID", defaults.rbac_replication_group_id
        ),
        rotation_days=_parse_days("ROTATION_DAYS", defaults.rotation_days),
        deploy_single_auth=_parse_bool(
            "DEPLOY_SINGLE_AUTH", defaults.deploy_single_auth
        ),
        deploy_rbac=_parse_bool("DEPLOY_RBAC", defaults.deploy_rbac),
        engine_version=_parse_str("ENGINE_VERSION", defaults.engine_version),
    )
    if not (config.deploy_single_auth or config.deploy_rbac):
        raise ConfigError("at least one of DEPLOY_SINGLE_AUTH or DEPLOY_RBAC must be on")
    return config
