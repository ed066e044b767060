import os


class Config:
    """Base configuration with sensible defaults."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # Simulation defaults for /simulate requests that omit them
    DEFAULT_STEP = float(os.environ.get("PHYSLAB_DEFAULT_STEP", 1 / 120))
    DEFAULT_SIMULATION_TIME = float(os.environ.get("PHYSLAB_DEFAULT_SIMULATION_TIME", 2.0))
    DEFAULT_INTEGRATOR = os.environ.get("PHYSLAB_DEFAULT_INTEGRATOR", "rk4")
    MAX_FRAMES = int(os.environ.get("PHYSLAB_MAX_FRAMES", 20000))


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False


class TestingConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    MAX_FRAMES = 2000
