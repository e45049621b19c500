"""Graph store clients.

GraphClientWriter renders batches as nGQL and runs them through a
StatementExecutor. NebulaExecutor is the executor for a live cluster and
needs the optional ``nebula`` extra.

Example:
    from graphloader.plugins.clients import GraphClientWriter, NebulaExecutor

    writer = GraphClientWriter(settings.graph, NebulaExecutor(settings.graph))
"""

from graphloader.plugins.clients.graph import GraphClientWriter, render_insert
from graphloader.plugins.clients.nebula import NebulaExecutor

__all__ = [
    "GraphClientWriter",
    "NebulaExecutor",
    "render_insert",
]
