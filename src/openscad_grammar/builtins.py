"""Names OpenSCAD provides without any declaration.

A :class:`Builtins` table is optional input to the scope resolver. Names found
in it are bound as ``BindingKind.BUILTIN`` instead of being reported as
unresolved.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Builtins:
    """A table of builtin module, function and variable names.

    Attributes:
        modules: Names of builtin modules, e.g. ``cube`` or ``translate``.
        functions: Names of builtin functions, e.g. ``sin`` or ``len``.
        variables: Names of builtin constants, e.g. ``PI``.
    """
    modules: frozenset[str] = frozenset()
    functions: frozenset[str] = frozenset()
    variables: frozenset[str] = frozenset()

    def extend(self, modules=(), functions=(), variables=()) -> "Builtins":
        """Return a copy of this table with additional names."""
        return Builtins(
            modules=self.modules | frozenset(modules),
            functions=self.functions | frozenset(functions),
            variables=self.variables | frozenset(variables),
        )


OPENSCAD_BUILTINS = Builtins(
    modules=frozenset({
        # 3D primitives
        "cube", "sphere", "cylinder", "polyhedron",
        # 2D primitives
        "square", "circle", "polygon", "text",
        "import", "surface", "projection",
        "linear_extrude", "rotate_extrude",
        # Transformations
        "translate", "rotate", "scale", "resize", "mirror", "multmatrix",
        "color", "offset", "hull", "minkowski",
        # Boolean operations
        "union", "difference", "intersection",
        # Other
        "render", "children", "intersection_for", "parent_module",
    }),
    functions=frozenset({
        # Math
        "abs", "sign", "sin", "cos", "tan", "acos", "asin", "atan", "atan2",
        "floor", "round", "ceil", "ln", "log", "pow", "sqrt", "exp", "rands",
        "min", "max", "norm", "cross",
        # Lists and strings
        "len", "concat", "lookup", "str", "chr", "ord", "search",
        "version", "version_num",
        # Type tests
        "is_undef", "is_bool", "is_num", "is_string", "is_list", "is_function",
    }),
    variables=frozenset({"PI"}),
)
