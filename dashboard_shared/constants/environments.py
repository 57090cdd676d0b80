from enum import Enum


class Environment(str, Enum):
    """Application environment types."""

    PRODUCTION = "production"
    STAGING = "staging"
    TESTING = "testing"
    DEVELOPMENT = "development"

    @classmethod
    def parse(cls, env: str) -> "Environment":
        """Map a free-form environment string to a member.

        Unknown values are treated as production so that an unexpected
        deploy label never enables development-only behaviour.
        """
        try:
            return cls(env.strip().lower())
        except ValueError:
            return cls.PRODUCTION

    @classmethod
    def is_production(cls, env: str) -> bool:
        return cls.parse(env) is cls.PRODUCTION

    @classmethod
    def is_testing(cls, env: str) -> bool:
        return cls.parse(env) is cls.TESTING
