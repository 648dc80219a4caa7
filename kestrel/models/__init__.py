"""
Kestrel Models - active-record models, query builder and pagination.

    from kestrel.models import Model

    class Post(Model):
        fillable = ("id", "title", "body")

    Post.use(db)
    Post.query().where("title", "LIKE", "%news%").paginate(10)
"""

from .base import Model, table_name_for
from .query import QueryBuilder, WhereCondition
from .pagination import Paginator

__all__ = [
    "Model",
    "QueryBuilder",
    "WhereCondition",
    "Paginator",
    "table_name_for",
]
