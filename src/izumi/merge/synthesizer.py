"""
Factory synthesis: renders provider factories and merged components for a validated graph.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from textwrap import indent

from .codegen import ImportTable, NameAllocator, camel_case, identifier, snake_case, split_dotted
from .config import SynthesisOptions
from .model import (
    Binding,
    BindingKey,
    ConstructionKind,
    Dependency,
    ElementNode,
    GraphNode,
    MapKey,
    ValidatedGraph,
)

logger = logging.getLogger(__name__)


class UnitKind(Enum):
    FACTORY = "factory"
    COMPONENT = "component"


@dataclass(frozen=True)
class GeneratedUnit:
    """A generated source unit ready to be handed to an emission sink."""

    name: str
    package: str
    kind: UnitKind
    imports: tuple[str, ...]
    body: str
    header: str = ""

    @property
    def module_name(self) -> str:
        return snake_case(self.name)

    @property
    def module_path(self) -> str:
        """Dotted module path the unit is meant to be importable from."""
        return f"{self.package}.{self.module_name}" if self.package else self.module_name

    @property
    def source(self) -> str:
        """The complete module source: header, imports and body."""
        sections = []
        if self.header:
            sections.append(self.header)
        sections.append("from __future__ import annotations")
        if self.imports:
            sections.append("\n".join(self.imports))
        return "\n\n".join(sections) + "\n\n\n" + self.body


@dataclass(frozen=True)
class FactoryRef:
    """Where the factory of one binding lives."""

    name: str
    package: str

    @property
    def module_path(self) -> str:
        module = snake_case(self.name)
        return f"{self.package}.{module}" if self.package else module

    @property
    def import_path(self) -> str:
        return f"{self.module_path}.{self.name}"


class FactorySynthesizer:
    """
    Generates one factory unit per binding and one merged-component unit per graph.

    Units are produced in discovery order and every name is assigned
    deterministically, so synthesizing the same graph twice yields identical
    source text. The synthesizer performs no I/O.

    Factory names should be assigned once per scope with :meth:`assign_names`
    and passed to every :meth:`synthesize` call of that scope, so that sibling
    components keeping different bindings never claim the same factory name.
    """

    def __init__(self, options: SynthesisOptions | None = None):
        self.options = options or SynthesisOptions()

    def assign_names(self, bindings: Iterable[Binding]) -> dict[Binding, FactoryRef]:
        """
        Assign a factory name to every binding, in the order given.

        Names are unique per package both as class names and as module names,
        so ``FooBarFactory`` and ``Foo_BarFactory`` never share a module file.

        Args:
            bindings: Bindings in discovery order; repeated bindings keep their first name

        Returns:
            The factory location of every binding
        """
        classes: dict[str, NameAllocator] = {}
        modules: dict[str, set[str]] = {}
        refs: dict[Binding, FactoryRef] = {}
        for binding in bindings:
            if binding in refs:
                continue
            package = split_dotted(binding.origin)[0]
            allocator = classes.setdefault(package, NameAllocator())
            taken_modules = modules.setdefault(package, set())
            base = self._factory_name(binding)
            name = allocator.allocate(base)
            while snake_case(name) in taken_modules:
                name = allocator.allocate(base)
            taken_modules.add(snake_case(name))
            refs[binding] = FactoryRef(name, package)
        return refs

    def synthesize(
        self, validated: ValidatedGraph, names: Mapping[Binding, FactoryRef] | None = None
    ) -> list[GeneratedUnit]:
        """
        Render the factories of ``validated`` followed by its merged component.

        Args:
            validated: The graph to render
            names: Scope-wide factory names from :meth:`assign_names`; when omitted,
                names are assigned from this graph alone

        Returns:
            One unit per binding in discovery order, then the component unit
        """
        refs = dict(names) if names is not None else self.assign_names(validated.binding_order)
        units = [self._factory_unit(binding, refs[binding]) for binding in validated.binding_order]
        units.append(self._component_unit(validated, refs))
        logger.debug(
            "Synthesized %d factory unit(s) and one component unit for %s",
            len(units) - 1,
            validated.component,
        )
        return units

    def _factory_name(self, binding: Binding) -> str:
        key = binding.key
        type_part = identifier(key.simple_name)
        qualifier_part = camel_case(key.qualifier) if key.qualifier else ""
        if not binding.multibinding:
            return f"{type_part}{qualifier_part}{self.options.factory_suffix}"
        return (
            f"{_source_name(binding)}Into{type_part}{qualifier_part}{self.options.factory_suffix}"
        )

    def _factory_unit(self, binding: Binding, ref: FactoryRef) -> GeneratedUnit:
        name = ref.name
        imports = ImportTable(reserved={name})
        provided = _annotation(binding.key, imports)
        owner = None
        if binding.construction.import_target is not None:
            owner = imports.add(binding.construction.import_target)
        provider = ""
        if binding.dependencies:
            provider = imports.add(f"{self.options.runtime_module}.Provider")
        annotations = [_annotation(d.key, imports) for d in binding.dependencies]

        # Parameters must not shadow the constructed class or an annotation
        locals_ = NameAllocator(reserved={"self", "cls", *imports.local_names()})
        parameters = [
            (locals_.allocate(_parameter_name(d)), d, annotation)
            for d, annotation in zip(binding.dependencies, annotations, strict=True)
        ]

        provider_params = ", ".join(
            f"{param}_provider: {provider}[{annotation}]" for param, _, annotation in parameters
        )
        instance_params = ", ".join(
            f"{param}: {provider}[{annotation}]" if d.is_deferred else f"{param}: {annotation}"
            for param, d, annotation in parameters
        )
        get_arguments = ", ".join(
            f"self._{param}_provider" if d.is_deferred else f"self._{param}_provider.get()"
            for param, d, _ in parameters
        )
        construction = binding.construction.render(owner, [param for param, _, _ in parameters])

        lines: list[str] = []
        if self.options.docstrings:
            lines.extend([f'"""{_factory_doc(binding)}"""', ""])
        if parameters:
            lines.extend(
                self._method(
                    f"def __init__(self, {provider_params}) -> None:",
                    [f"self._{param}_provider = {param}_provider" for param, _, _ in parameters],
                )
            )
        lines.extend(
            self._method(
                f"def get(self) -> {provided}:",
                [f"return {name}.new_instance({get_arguments})"],
            )
        )
        lines.extend(
            self._method(
                f"def create({provider_params}) -> {name}:",
                [f"return {name}({', '.join(f'{p}_provider' for p, _, _ in parameters)})"],
                decorator="@staticmethod",
            )
        )
        lines.extend(
            self._method(
                f"def new_instance({instance_params}) -> {provided}:",
                [f"return {construction}"],
                decorator="@staticmethod",
            )
        )
        return self._unit(name, ref.package, UnitKind.FACTORY, imports, lines)

    def _component_unit(
        self, validated: ValidatedGraph, refs: Mapping[Binding, FactoryRef]
    ) -> GeneratedUnit:
        component = validated.component
        name = f"{identifier(component.simple_name)}{self.options.component_suffix}"
        imports = ImportTable(reserved={name})
        runtime = self.options.runtime_module
        order = validated.wiring_order()
        delegated = self._delegated_keys(
            validated, order, {d.key for d in component.instance_parameters}
        )

        bases = [imports.add(interface.identity) for interface in validated.interfaces]
        self._register_imports(validated, order, delegated, refs, imports)

        fields = NameAllocator()
        providers: dict[BindingKey, str] = {}
        init_lines: list[str] = []

        parameter_names = NameAllocator(reserved={"self", "cls", *imports.local_names()})
        parameters: list[tuple[str, Dependency]] = []
        for dependency in component.instance_parameters:
            param = parameter_names.allocate(_parameter_name(dependency))
            parameters.append((param, dependency))
            field = fields.allocate(f"_{param}_provider")
            providers[dependency.key] = field
            instance_provider = imports.add(f"{runtime}.InstanceProvider")
            init_lines.append(f"self.{field} = {instance_provider}({param})")

        delegates: dict[BindingKey, str] = {}
        for key in delegated:
            delegates[key] = fields.allocate(f"_{_key_slug(key)}_delegate")
            delegate_provider = imports.add(f"{runtime}.DelegateProvider")
            init_lines.append(f"self.{delegates[key]} = {delegate_provider}()")

        element_fields: dict[str, str] = {}
        for node in order:
            if isinstance(node, ElementNode):
                binding = _element_binding(validated, node)
                field = fields.allocate(
                    f"_{snake_case(_source_name(binding))}_into_{_key_slug(binding.key)}_provider"
                )
                element_fields[binding.identity] = field
                init_lines.append(
                    self._factory_call(field, binding, refs, imports, providers, delegates)
                )
                continue

            field = fields.allocate(f"_{_key_slug(node)}_provider")
            if node.is_map:
                map_provider = imports.add(f"{runtime}.MapProvider")
                entries = ", ".join(
                    f"{_map_key_literal(b.map_key, imports)}: self.{element_fields[b.identity]}"
                    for b in validated.multibindings[node]
                    if b.map_key is not None
                )
                init_lines.append(f"self.{field} = {map_provider}({{{entries}}})")
            elif node.multibound:
                set_provider = imports.add(f"{runtime}.SetProvider")
                elements = ", ".join(
                    f"self.{element_fields[b.identity]}" for b in validated.multibindings[node]
                )
                init_lines.append(f"self.{field} = {set_provider}([{elements}])")
            else:
                binding = validated.bindings[node]
                init_lines.append(
                    self._factory_call(field, binding, refs, imports, providers, delegates)
                )
            providers[node] = field
            if node in delegates:
                init_lines.append(f"self.{delegates[node]}.set_delegate(self.{field})")

        signature_params = "".join(
            f", {param}: {_annotation(d.key, imports)}" for param, d in parameters
        )
        modules = [json.dumps(identity) for identity in validated.graph.module_identities]

        lines: list[str] = []
        if self.options.docstrings:
            lines.extend(
                [f'"""Merged component {component.identity} for scope {component.scope}."""', ""]
            )
        if modules:
            lines.append("MODULES: tuple[str, ...] = (")
            lines.extend(f"{self.options.indent}{module}," for module in modules)
            lines.extend([")", ""])
        else:
            lines.extend(["MODULES: tuple[str, ...] = ()", ""])
        if init_lines or parameters:
            lines.extend(
                self._method(
                    f"def __init__(self{signature_params}) -> None:", init_lines or ["pass"]
                )
            )
        lines.extend(
            self._method(
                f"def create(cls{signature_params}) -> {name}:",
                [f"return cls({', '.join(param for param, _ in parameters)})"],
                decorator="@classmethod",
            )
        )

        accessor_names = NameAllocator(reserved={"create", "MODULES"})
        for accessor in component.accessors:
            method = accessor_names.allocate(identifier(accessor.name))
            lines.extend(
                self._method(
                    f"def {method}(self) -> {_annotation(accessor.key, imports)}:",
                    [f"return self.{providers[accessor.key]}.get()"],
                )
            )
        return self._unit(name, component.package, UnitKind.COMPONENT, imports, lines, bases)

    def _register_imports(
        self,
        validated: ValidatedGraph,
        order: list[GraphNode],
        delegated: list[BindingKey],
        refs: Mapping[Binding, FactoryRef],
        imports: ImportTable,
    ) -> None:
        """Import everything the component refers to, in the order the wiring uses it."""
        component = validated.component
        runtime = self.options.runtime_module
        if component.instance_parameters:
            imports.add(f"{runtime}.InstanceProvider")
        if delegated:
            imports.add(f"{runtime}.DelegateProvider")
        for node in order:
            if isinstance(node, ElementNode):
                imports.add(refs[_element_binding(validated, node)].import_path)
            elif node.is_map:
                imports.add(f"{runtime}.MapProvider")
                for binding in validated.multibindings[node]:
                    if binding.map_key is not None:
                        _map_key_literal(binding.map_key, imports)
            elif node.multibound:
                imports.add(f"{runtime}.SetProvider")
            else:
                imports.add(refs[validated.bindings[node]].import_path)
        for dependency in component.instance_parameters:
            _annotation(dependency.key, imports)
        for accessor in component.accessors:
            _annotation(accessor.key, imports)

    def _delegated_keys(
        self, validated: ValidatedGraph, order: list[GraphNode], available: set[BindingKey]
    ) -> list[BindingKey]:
        """Keys requested through a deferred edge before their provider is wired."""
        wired = set(available)
        delegated: list[BindingKey] = []
        for node in order:
            if isinstance(node, ElementNode):
                binding: Binding | None = _element_binding(validated, node)
            else:
                binding = validated.bindings.get(node)
            if binding is not None:
                for dependency in binding.dependencies:
                    key = dependency.key
                    if dependency.is_deferred and key not in wired and key not in delegated:
                        delegated.append(key)
            if isinstance(node, BindingKey):
                wired.add(node)
        return delegated

    def _factory_call(
        self,
        field: str,
        binding: Binding,
        refs: Mapping[Binding, FactoryRef],
        imports: ImportTable,
        providers: dict[BindingKey, str],
        delegates: dict[BindingKey, str],
    ) -> str:
        factory = imports.add(refs[binding].import_path)
        arguments = []
        for dependency in binding.dependencies:
            key = dependency.key
            target = providers[key] if key in providers else delegates[key]
            arguments.append(f"self.{target}")
        return f"self.{field} = {factory}.create({', '.join(arguments)})"

    def _method(
        self, signature: str, body: Sequence[str], decorator: str | None = None
    ) -> list[str]:
        lines = [decorator] if decorator else []
        lines.append(signature)
        lines.extend(f"{self.options.indent}{line}" for line in body)
        lines.append("")
        return lines

    def _unit(
        self,
        name: str,
        package: str,
        kind: UnitKind,
        imports: ImportTable,
        lines: list[str],
        bases: Sequence[str] = (),
    ) -> GeneratedUnit:
        while lines and not lines[-1]:
            lines.pop()
        class_body = indent("\n".join(lines), self.options.indent)
        declaration = f"class {name}({', '.join(bases)}):" if bases else f"class {name}:"
        return GeneratedUnit(
            name=name,
            package=package,
            kind=kind,
            imports=tuple(imports.render()),
            body=f"{declaration}\n{class_body}\n",
            header=self.options.header,
        )


def _annotation(key: BindingKey, imports: ImportTable) -> str:
    local = imports.add(key.type_name)
    if key.multibound and key.map_key_type is not None:
        return f"dict[{imports.add(key.map_key_type)}, {local}]"
    return f"set[{local}]" if key.multibound else local


def _map_key_literal(map_key: MapKey, imports: ImportTable) -> str:
    if map_key.is_class:
        return imports.add(str(map_key.value))
    return repr(map_key.value)


def _key_slug(key: BindingKey) -> str:
    parts = [snake_case(identifier(key.simple_name))]
    if key.qualifier:
        parts.append(snake_case(camel_case(key.qualifier)))
    if key.is_map:
        parts.append("map")
    elif key.multibound:
        parts.append("set")
    return "_".join(part for part in parts if part)


def _parameter_name(dependency: Dependency) -> str:
    if dependency.name:
        return identifier(dependency.name)
    return identifier(_key_slug(dependency.key))


def _source_name(binding: Binding) -> str:
    """Name of what contributes a multibinding element: the class, or module plus method."""
    origin = identifier(split_dotted(binding.origin)[1])
    if binding.contributed:
        return origin
    return origin + camel_case(split_dotted(binding.identity)[1])


def _element_binding(validated: ValidatedGraph, node: ElementNode) -> Binding:
    for binding in validated.multibindings[node.set_key]:
        if binding.identity == node.identity:
            return binding
    raise KeyError(node)


def _factory_doc(binding: Binding) -> str:
    construction = binding.construction
    if construction.kind is ConstructionKind.ALIAS:
        how = f"as an alias of {binding.dependencies[0].key}"
    elif construction.kind is ConstructionKind.PROVIDER_FUNCTION:
        how = f"through {construction.owner}.{construction.member}()"
    else:
        how = f"by constructing {construction.owner}"
    into = f" into {binding.target_key}" if binding.multibinding else ""
    if binding.map_key is not None:
        into += f" under {binding.map_key}"
    return f"Provides {binding.key}{into} {how}."
