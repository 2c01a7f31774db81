"""LDAP request controls not shipped with ldap3.

Server Side Sort (RFC 2891):

    SortKeyList ::= SEQUENCE OF SEQUENCE {
        attributeType   AttributeDescription,
        orderingRule    [0] MatchingRuleId OPTIONAL,
        reverseOrder    [1] BOOLEAN DEFAULT FALSE }
"""
from __future__ import annotations

from ldap3.protocol.controls import build_control
from pyasn1.type.namedtype import DefaultedNamedType, NamedType, NamedTypes, OptionalNamedType
from pyasn1.type.tag import Tag, tagClassContext, tagFormatSimple
from pyasn1.type.univ import Boolean, OctetString, Sequence, SequenceOf

SERVER_SORT_OID = "1.2.840.113556.1.4.473"
PAGED_RESULTS_OID = "1.2.840.113556.1.4.319"
MATCHING_RULE_IN_CHAIN_OID = "1.2.840.113556.1.4.1941"


class SortKey(Sequence):
    componentType = NamedTypes(
        NamedType("attributeType", OctetString()),
        OptionalNamedType(
            "orderingRule",
            OctetString().subtype(implicitTag=Tag(tagClassContext, tagFormatSimple, 0)),
        ),
        DefaultedNamedType(
            "reverseOrder",
            Boolean(False).subtype(implicitTag=Tag(tagClassContext, tagFormatSimple, 1)),
        ),
    )


class SortKeyList(SequenceOf):
    componentType = SortKey()


def server_sort_control(attribute: str, reverse: bool = False, criticality: bool = False):
    key = SortKey()
    key.setComponentByName("attributeType", attribute)
    if reverse:
        key.setComponentByName("reverseOrder", True)

    keys = SortKeyList()
    keys.setComponentByPosition(0, key)
    return build_control(SERVER_SORT_OID, criticality, keys)
