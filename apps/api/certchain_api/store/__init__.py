from certchain_api.store.repository import RequestStore, SqlAlchemyRequestStore

__all__ = ["RequestStore", "SqlAlchemyRequestStore"]
