from __future__ import annotations

import logging
from collections import defaultdict, deque

from boxflow.app.engine.algebra import compose, derive_composite_arity, derive_route, par_all
from boxflow.app.engine.context import BoxContext
from boxflow.app.engine.errors import ArityMismatch, MalformedGraphError, UnresolvableRecursion
from boxflow.app.engine.primitives import check_leaf_operands, leaf_arity, make_leaf
from boxflow.app.engine.store import Box
from boxflow.app.models.box import Arity, BoxKind, BoxNode

logger = logging.getLogger(__name__)


class CycleResolver:
    """Rewrite every rec composition into an explicit feedback loop.

    ``rec(A, B)`` becomes ``feedback_loop(name; (taps, wires) : A, B)`` where
    each tap is a 0->1 leaf standing for B's j-th output one sample ago. After
    the rewrite the box graph is a DAG that the flattener walks without cycle
    checks. Every node is re-validated on the way, so graphs imported without
    the algebra's checks are caught here.
    """

    def __init__(self, context: BoxContext):
        self._context = context
        self._store = context.store
        self._prefix = context.settings.feedback_group_prefix

    def resolve(self, root: Box) -> Box:
        self._context.check(root)
        resolved = self._context.resolved
        cached = resolved.get(root.index)
        if cached is not None:
            return cached

        rec_count = 0
        for index in self._topological_order(root.index):
            node = self._store.node(index)
            if node.kind == BoxKind.REC:
                rec_count += 1
            resolved[index] = self._rewrite(index, node)

        result = resolved[root.index]
        resolved.setdefault(result.index, result)
        if rec_count:
            logger.debug("Resolved %d rec composition(s) under box #%d", rec_count, root.index)
        return result

    def _topological_order(self, root_index: int) -> list[int]:
        resolved = self._context.resolved
        indegree: dict[int, int] = {}
        dependents: dict[int, list[int]] = defaultdict(list)

        stack = [root_index]
        while stack:
            index = stack.pop()
            if index in indegree:
                continue
            indegree[index] = 0
            if index in resolved:
                continue
            for operand in self._store.node(index).operands:
                dependents[operand].append(index)
                stack.append(operand)

        for index in indegree:
            if index in resolved:
                continue
            indegree[index] = len(self._store.node(index).operands)

        queue = deque(sorted(index for index, degree in indegree.items() if degree == 0))
        ordered: list[int] = []
        while queue:
            index = queue.popleft()
            ordered.append(index)
            for dependent in dependents[index]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    queue.append(dependent)

        if len(ordered) != len(indegree):
            stuck = sorted(index for index, degree in indegree.items() if degree > 0)
            preview = ", ".join(f"#{index}" for index in stuck[:8])
            raise UnresolvableRecursion(
                f"boxes {preview} form a cycle that is not a rec composition; "
                "feedback needs rec (A~B) so that it passes through a one-sample delay"
            )

        return [index for index in ordered if index not in resolved]

    def _rewrite(self, index: int, node: BoxNode) -> Box:
        operands = [self._context.resolved[operand] for operand in node.operands]
        operand_nodes = [self._store.node(operand) for operand in node.operands]
        expected = self._expected_arity(index, node, operand_nodes)
        if expected != node.arity:
            raise MalformedGraphError(
                f"box #{index} ({node.kind}) declares arity {node.arity} but its structure gives {expected}"
            )

        if node.kind == BoxKind.REC:
            return self._resolve_rec(index, node, operands[0], operands[1])
        if all(resolved.index == original for resolved, original in zip(operands, node.operands)):
            return self._store.handle(index)
        return self._store.intern(node.kind, node.payload, tuple(box.index for box in operands), node.arity)

    def _expected_arity(self, index: int, node: BoxNode, operands: list[BoxNode]) -> Arity:
        kind = node.kind
        try:
            if kind == BoxKind.ROUTE:
                if len(operands) != 3:
                    raise MalformedGraphError(f"box #{index} (route) needs 3 operands, has {len(operands)}")
                n, m, pairs = derive_route(self._store, *node.operands)
                if (n, m, pairs) != tuple(node.payload):
                    raise MalformedGraphError(
                        f"box #{index} (route) routing table {node.payload!r} does not match its operands"
                    )
                return Arity(n, m)

            if kind.is_composite:
                if len(operands) != 2:
                    raise MalformedGraphError(f"box #{index} ({kind}) needs 2 operands, has {len(operands)}")
                return derive_composite_arity(kind, operands[0].arity, operands[1].arity)

            check_leaf_operands(kind, operands)
            return leaf_arity(kind, node.payload)
        except ArityMismatch as error:
            raise MalformedGraphError(f"box #{index} bypassed composition checks: {error.message}") from error
        except (IndexError, TypeError, ValueError) as error:
            raise MalformedGraphError(
                f"box #{index} ({kind}) has an unusable payload {node.payload!r}: {error}"
            ) from error

    def _resolve_rec(self, index: int, node: BoxNode, a: Box, b: Box) -> Box:
        context = self._context
        name = f"{self._prefix}{index}"
        a_arity, b_arity = a.arity, b.arity

        feeds = [make_leaf(context, BoxKind.FEEDBACK_TAP, (name, j)) for j in range(b_arity.outputs)]
        feeds.extend(make_leaf(context, BoxKind.WIRE) for _ in range(a_arity.inputs - b_arity.outputs))
        body = compose(context, BoxKind.SEQ, par_all(context, feeds), a) if feeds else a

        return self._store.intern(BoxKind.FEEDBACK_LOOP, (name,), (body.index, b.index), node.arity)
