"""
Namespace-aware helpers for walking and building ElementTree documents.

Reading is table driven: a *structure* maps a namespace URI to a mapping of
local element names to parser callables. ``parse_node`` visits the element
children of a node in document order and hands each recognised child to its
parser together with a caller-owned target (a dict or list being filled)
and the per-call context. Unrecognised children are ignored.

Writing mirrors this: ``serialize_sequence`` takes an ordered list of
values, creates one child per non-None value through a node factory and
dispatches to the serializer registered for the created element.
"""

import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from waymark.core.errors import InvariantError

KML_NS = "http://www.opengis.net/kml/2.2"
GX_NS = "http://www.google.com/kml/ext/2.2"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

# Namespaces whose elements are read as KML; None is "no namespace".
KML_NAMESPACE_URIS: Tuple[Optional[str], ...] = (
    None,
    "http://earth.google.com/kml/2.0",
    "http://earth.google.com/kml/2.1",
    "http://earth.google.com/kml/2.2",
    KML_NS,
)
GX_NAMESPACE_URIS: Tuple[Optional[str], ...] = (GX_NS,)

SCHEMA_LOCATION = (
    "http://www.opengis.net/kml/2.2 "
    "https://developers.google.com/kml/schema/kml22gx.xsd"
)

# Process-wide: any ElementTree output in the same interpreter will write
# KML 2.2 elements unprefixed and gx/xsi elements with these prefixes.
# tostring's default_namespace cannot be used instead because it rejects
# unqualified attributes such as id and name.
ET.register_namespace("", KML_NS)
ET.register_namespace("gx", GX_NS)
ET.register_namespace("xsi", XSI_NS)

# parser(node, target, context)
Parser = Callable[[ET.Element, Any, Any], None]
# reader(node, context) -> value or None
Reader = Callable[[ET.Element, Any], Any]
# serializer(node, value, context)
Serializer = Callable[[ET.Element, Any, Any], None]
# factory(parent, value, node_name) -> new element or None
NodeFactory = Callable[[ET.Element, Any, Optional[str]], Optional[ET.Element]]

Structure = Dict[Optional[str], Mapping[str, Any]]


def split_tag(tag: str) -> Tuple[Optional[str], str]:
    """Split a Clark-notation tag into (namespace or None, local name)."""
    if tag[:1] == "{":
        uri, local = tag[1:].split("}", 1)
        return uri, local
    return None, tag


def qualify(namespace: Optional[str], local_name: str) -> str:
    """Build a Clark-notation tag."""
    return f"{{{namespace}}}{local_name}" if namespace else local_name


def local_name(node: ET.Element) -> str:
    return split_tag(node.tag)[1]


def namespace_of(node: ET.Element) -> Optional[str]:
    return split_tag(node.tag)[0]


def element_children(node: ET.Element) -> Iterable[ET.Element]:
    """Child elements in document order, skipping comments and PIs."""
    return (child for child in node if isinstance(child.tag, str))


def is_kml_element(node: ET.Element, *names: str) -> bool:
    """True when node is in a KML namespace and, if given, has one of the names."""
    namespace, name = split_tag(node.tag)
    if namespace not in KML_NAMESPACE_URIS:
        return False
    return not names or name in names


def get_all_text_content(node: ET.Element) -> str:
    """Concatenate all descendant text, without whitespace normalisation."""
    return "".join(node.itertext())


def make_structure_ns(
    namespace_uris: Sequence[Optional[str]],
    structure: Mapping[str, Any],
    base: Optional[Structure] = None,
) -> Structure:
    """
    Register the same name table under each namespace.

    Args:
        namespace_uris: Namespaces to register under
        structure: Local name -> parser/serializer
        base: Existing structure to extend (copied, not modified)

    Returns:
        Namespace -> name table
    """
    result: Structure = dict(base) if base else {}
    for uri in namespace_uris:
        result[uri] = structure
    return result


def parse_node(structure: Structure, node: ET.Element, target: Any, context: Any) -> None:
    """Dispatch every recognised child of node to its parser."""
    for child in element_children(node):
        namespace, name = split_tag(child.tag)
        parsers = structure.get(namespace)
        if parsers is None:
            continue
        parser = parsers.get(name)
        if parser is not None:
            parser(child, target, context)


def push_parse_and_pop(target: Any, structure: Structure, node: ET.Element, context: Any) -> Any:
    """Fill target from the children of node and return it."""
    parse_node(structure, node, target, context)
    return target


def text_reader(convert: Callable[[str], Any]) -> Reader:
    """Adapt a text-level converter into a node reader."""

    def reader(node: ET.Element, context: Any) -> Any:
        return convert(get_all_text_content(node))

    return reader


def make_property_setter(reader: Reader, property_name: Optional[Hashable] = None) -> Parser:
    """
    Parser storing ``reader``'s result in a dict target.

    The key is property_name, or the child's local name when omitted.
    None results are not stored.
    """

    def setter(node: ET.Element, target: Dict[str, Any], context: Any) -> None:
        value = reader(node, context)
        if value is not None:
            target[property_name or local_name(node)] = value

    return setter


def make_array_pusher(reader: Reader) -> Parser:
    """Parser appending ``reader``'s non-None result to a list target."""

    def pusher(node: ET.Element, target: List[Any], context: Any) -> None:
        value = reader(node, context)
        if value is not None:
            target.append(value)

    return pusher


def make_array_extender(reader: Reader) -> Parser:
    """Parser extending a list target with ``reader``'s result."""

    def extender(node: ET.Element, target: List[Any], context: Any) -> None:
        values = reader(node, context)
        if values:
            target.extend(values)

    return extender


def make_sequence(properties: Mapping[str, Any], ordered_keys: Sequence[str]) -> List[Any]:
    """Values of properties in key order, None where a key is missing."""
    return [properties.get(key) for key in ordered_keys]


def object_property_node_factory(
    parent: ET.Element, value: Any, node_name: Optional[str]
) -> ET.Element:
    """Create an element named after the property, in the parent's namespace."""
    if node_name is None:
        raise InvariantError("A property node needs a name")
    return ET.Element(qualify(namespace_of(parent), node_name))


def make_simple_node_factory(node_name: str, namespace: Optional[str] = None) -> NodeFactory:
    """Factory creating a fixed element, in the parent's namespace unless given."""

    def factory(parent: ET.Element, value: Any, name: Optional[str]) -> ET.Element:
        return ET.Element(qualify(namespace or namespace_of(parent), node_name))

    return factory


def serialize_sequence(
    parent: ET.Element,
    serializers: Structure,
    node_factory: NodeFactory,
    values: Sequence[Any],
    context: Any,
    keys: Optional[Sequence[str]] = None,
) -> None:
    """
    Append one child per non-None value and serialize into it.

    Args:
        parent: Element receiving the children
        serializers: Namespace -> local name -> serializer
        node_factory: Creates the child for a value (may return None to skip)
        values: Values in emission order
        context: Per-call write context
        keys: Node names parallel to values, passed to the factory
    """
    for index, value in enumerate(values):
        if value is None:
            continue
        node = node_factory(parent, value, keys[index] if keys is not None else None)
        if node is None:
            continue
        namespace, name = split_tag(node.tag)
        serializer = serializers.get(namespace, {}).get(name)
        if serializer is None:
            raise InvariantError("No serializer registered for element", value=node.tag)
        parent.append(node)
        serializer(node, value, context)


def declare_namespace(root: ET.Element, prefix: str, uri: str) -> None:
    """
    Declare prefix on root unless an element already uses the namespace.

    ElementTree declares namespaces it sees in tags on its own; an explicit
    declaration is only needed (and only safe) when none does.
    """
    marker = f"{{{uri}}}"
    if any(element.tag.startswith(marker) for element in root.iter()):
        return
    root.set(f"xmlns:{prefix}", uri)


def write_text(node: ET.Element, text: str) -> None:
    node.text = text
