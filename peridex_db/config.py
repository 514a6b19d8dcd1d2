from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    data_path: str = "data/"
    map_size: int = 1 << 30
    sync: bool = True
    rebuild_batch_size: int = 300
    version_index_name: str = "DATABASE_VERSION"
    default_query_limit: int = 100
    index_hash_algorithm: str = "fnv1a64"

    model_config = SettingsConfigDict(env_prefix="PERIDEX_")


settings = Settings()
