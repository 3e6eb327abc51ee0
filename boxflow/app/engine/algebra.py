from __future__ import annotations

from boxflow.app.engine.context import BoxContext, get_active_context
from boxflow.app.engine.errors import ArityMismatch
from boxflow.app.engine.store import Box, BoxStore
from boxflow.app.models.box import Arity, BoxKind

RoutePairs = tuple[tuple[int, int], ...]


def derive_composite_arity(kind: BoxKind, left: Arity, right: Arity) -> Arity:
    ia, oa = left
    ib, ob = right

    if kind == BoxKind.SEQ:
        if oa != ib:
            raise ArityMismatch("seq", left, right, f"outputs of A ({oa}) must equal inputs of B ({ib})")
        return Arity(ia, ob)

    if kind == BoxKind.PAR:
        return Arity(ia + ib, oa + ob)

    if kind == BoxKind.SPLIT:
        if oa <= 0 or ib == 0 or ib % oa != 0:
            raise ArityMismatch(
                "split", left, right, f"inputs of B ({ib}) must be a positive multiple of outputs of A ({oa})"
            )
        return Arity(ia, ob)

    if kind == BoxKind.MERGE:
        if ib <= 0 or oa == 0 or oa % ib != 0:
            raise ArityMismatch(
                "merge", left, right, f"outputs of A ({oa}) must be a positive multiple of inputs of B ({ib})"
            )
        return Arity(ia, ob)

    if kind == BoxKind.REC:
        problems = []
        if oa < ib:
            problems.append(f"outputs(A) >= inputs(B) fails ({oa} < {ib})")
        if ia < ob:
            problems.append(f"inputs(A) >= outputs(B) fails ({ia} < {ob})")
        if problems:
            raise ArityMismatch("rec", left, right, "; ".join(problems))
        return Arity(ia - ob, oa - ib)

    if kind == BoxKind.FEEDBACK_LOOP:
        # A's fed-back inputs were already replaced by feedback taps.
        if oa < ib:
            raise ArityMismatch("rec", left, right, f"requires outputs(A) >= inputs(B) ({oa} < {ib})")
        return Arity(ia, oa - ib)

    if kind == BoxKind.ATTACH:
        if ib != 0:
            raise ArityMismatch("attach", left, right, f"B must not have inputs ({ib})")
        if ob > 0 and oa == 0:
            raise ArityMismatch("attach", left, right, "A needs at least one output to carry B's outputs")
        return Arity(ia, oa)

    raise ValueError(f"'{kind}' is not a binary composition operator")


def int_value(store: BoxStore, index: int) -> int | None:
    node = store.node(index)
    if node.kind != BoxKind.INT:
        return None
    return node.payload[0]


def route_values(store: BoxStore, index: int) -> list[int] | None:
    """Read a par-tree of int boxes left to right; None if any leaf is not an int."""
    values: list[int] = []
    stack = [index]
    while stack:
        node = store.node(stack.pop())
        if node.kind == BoxKind.PAR and len(node.operands) == 2:
            stack.append(node.operands[1])
            stack.append(node.operands[0])
            continue
        if node.kind != BoxKind.INT:
            return None
        values.append(node.payload[0])
    return values


def derive_route(store: BoxStore, n_index: int, m_index: int, r_index: int) -> tuple[int, int, RoutePairs]:
    n = int_value(store, n_index)
    m = int_value(store, m_index)
    r_arity = store.node(r_index).arity
    declared = Arity(n if n is not None else -1, m if m is not None else -1)

    if n is None or m is None:
        raise ArityMismatch("route", declared, r_arity, "input and output counts must be int boxes")
    if n <= 0 or m <= 0:
        raise ArityMismatch("route", declared, r_arity, "input and output counts must be positive")

    values = route_values(store, r_index)
    if values is None:
        raise ArityMismatch("route", declared, r_arity, "routing pairs must be a par-expression of int boxes")
    if len(values) != 2 * n:
        raise ArityMismatch(
            "route", declared, r_arity, f"expected exactly {n} (source, destination) pairs, got {len(values) / 2:g}"
        )

    pairs = tuple((values[i], values[i + 1]) for i in range(0, len(values), 2))
    seen: set[int] = set()
    for source, destination in pairs:
        if not 1 <= source <= n:
            raise ArityMismatch("route", declared, r_arity, f"source {source} is outside 1..{n}")
        if not 1 <= destination <= m:
            raise ArityMismatch("route", declared, r_arity, f"destination {destination} is outside 1..{m}")
        if source in seen:
            raise ArityMismatch("route", declared, r_arity, f"source {source} is routed more than once")
        seen.add(source)
    return n, m, pairs


def compose(context: BoxContext, kind: BoxKind, a: Box, b: Box) -> Box:
    context.check(a, b)
    arity = derive_composite_arity(kind, a.arity, b.arity)
    return context.store.intern(kind, (), (a.index, b.index), arity)


def par_all(context: BoxContext, boxes: list[Box]) -> Box:
    if not boxes:
        raise ValueError("par_all() needs at least one box")
    result = boxes[0]
    for box in boxes[1:]:
        result = compose(context, BoxKind.PAR, result, box)
    return result


def box_seq(x: Box, y: Box) -> Box:
    """Sequential composition A:B; requires outputs(A) == inputs(B)."""
    return compose(get_active_context(), BoxKind.SEQ, x, y)


def box_par(x: Box, y: Box) -> Box:
    """Parallel composition A,B; always legal."""
    return compose(get_active_context(), BoxKind.PAR, x, y)


def box_par3(x: Box, y: Box, z: Box) -> Box:
    return par_all(get_active_context(), [x, y, z])


def box_par4(a: Box, b: Box, c: Box, d: Box) -> Box:
    return par_all(get_active_context(), [a, b, c, d])


def box_par5(a: Box, b: Box, c: Box, d: Box, e: Box) -> Box:
    return par_all(get_active_context(), [a, b, c, d, e])


def box_split(x: Box, y: Box) -> Box:
    """Split composition A<:B.

    inputs(B) must be a positive multiple of outputs(A). Input j of B receives
    output j mod outputs(A) of A.
    """
    return compose(get_active_context(), BoxKind.SPLIT, x, y)


def box_merge(x: Box, y: Box) -> Box:
    """Merge composition A:>B.

    outputs(A) must be a positive multiple of inputs(B). Output j of A is summed
    into input j mod inputs(B) of B.
    """
    return compose(get_active_context(), BoxKind.MERGE, x, y)


def box_rec(x: Box, y: Box) -> Box:
    """Recursive composition A~B.

    The first inputs(B) outputs of A feed B; B's outputs come back, one sample
    later, into the first outputs(B) inputs of A.
    """
    return compose(get_active_context(), BoxKind.REC, x, y)


def box_attach(x: Box, y: Box) -> Box:
    """Keep A's signals and force B into the same compiled unit.

    B must have no inputs. When B has outputs, A needs at least one output;
    B's outputs are attached to A's first output.
    """
    return compose(get_active_context(), BoxKind.ATTACH, x, y)


def box_route(n: Box, m: Box, r: Box) -> Box:
    """Explicit routing of n inputs to m outputs.

    r is an int box or a par-expression of int boxes listing (source,
    destination) pairs, 1-based. Every input is routed exactly once; outputs
    receiving several inputs sum them and unrouted outputs are silent.
    """
    context = get_active_context()
    context.check(n, m, r)
    n_value, m_value, pairs = derive_route(context.store, n.index, m.index, r.index)
    return context.store.intern(
        BoxKind.ROUTE,
        (n_value, m_value, pairs),
        (n.index, m.index, r.index),
        Arity(n_value, m_value),
    )
