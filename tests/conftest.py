import itertools

import pytest

from guardlint.source import Node, SourceUnit, Span
from guardlint.utils.estree import unit_from_estree


class NodeFactory:
    """Build nodes with distinct, increasing spans."""

    def __init__(self):
        self._offsets = itertools.count(0, 10)

    def __call__(self, kind, children=None, /, **attributes):
        start = next(self._offsets)
        return Node(
            kind=kind,
            span=Span(start, start + 5, line=start // 10 + 1, column=0),
            attributes=attributes,
            children=dict(children or {}),
        )

    @staticmethod
    def unit(*roots, unit_id="handler.ts", text=""):
        return SourceUnit(id=unit_id, text=text, nodes=roots)


class EstreeFactory:
    """Build ESTree JSON documents the way espree emits them."""

    def __init__(self):
        self._offsets = itertools.count(0, 10)

    def __call__(self, type_, **fields):
        start = next(self._offsets)
        line = start // 10 + 1
        document = {
            "type": type_,
            "range": [start, start + 5],
            "loc": {"start": {"line": line, "column": 0}, "end": {"line": line, "column": 5}},
        }
        document.update(fields)
        return document

    def ident(self, name):
        return self("Identifier", name=name)

    def literal(self, value):
        return self("Literal", value=value, raw=repr(value))

    def member(self, obj, prop):
        target = self.ident(obj) if isinstance(obj, str) else obj
        return self("MemberExpression", object=target, property=self.ident(prop), computed=False)

    def call(self, callee, *args):
        return self("CallExpression", callee=callee, arguments=list(args), optional=False)

    def prop(self, key, value):
        key_node = self.ident(key) if key.isidentifier() else self.literal(key)
        return self("Property", key=key_node, value=value, kind="init", computed=False)

    def obj(self, *props):
        return self("ObjectExpression", properties=list(props))

    def const(self, name, init):
        declarator = self("VariableDeclarator", id=self.ident(name), init=init)
        return self("VariableDeclaration", declarations=[declarator], kind="const")

    def expr(self, expression):
        return self("ExpressionStatement", expression=expression)

    def program(self, *statements):
        return self("Program", body=list(statements), sourceType="module")


@pytest.fixture
def node():
    return NodeFactory()


@pytest.fixture
def estree():
    return EstreeFactory()


def _sql_query(es, variant):
    if variant == "template-literal":
        return es(
            "TemplateLiteral",
            quasis=[
                es("TemplateElement", value={"raw": "SELECT * FROM users WHERE name = '"}, tail=False),
                es("TemplateElement", value={"raw": "'"}, tail=True),
            ],
            expressions=[es.ident("userInput")],
        )
    return es(
        "BinaryExpression",
        operator="+",
        left=es.literal("SELECT * FROM users WHERE name = '"),
        right=es.ident("userInput"),
    )


@pytest.fixture(params=["template-literal", "string-concat"])
def vulnerable_handler(request, estree):
    """A vulnerable handler unit and the SQL rule its query should trip."""

    es = estree
    program = es.program(
        es.const("API_KEY", es.literal("sk-1234567890abcdef")),
        es.expr(
            es.call(
                es.member("console", "log"),
                es.literal("Processing request with SSN:"),
                es.member(es.member("process", "env"), "SSN"),
            )
        ),
        es.expr(
            es.call(
                es.member("mysql", "createConnection"),
                es.obj(es.prop("host", es.literal("localhost")), es.prop("password", es.literal("admin123"))),
            )
        ),
        es.expr(es.call(es.member("connection", "execute"), _sql_query(es, request.param))),
        es.expr(es.call(es.member("crypto", "createHash"), es.literal("md5"))),
        es.expr(
            es.obj(
                es.prop("headers", es.obj(es.prop("Access-Control-Allow-Origin", es.literal("*")))),
                es.prop("stack", es.member("error", "stack")),
            )
        ),
    )
    unit = unit_from_estree({"id": f"vulnerable-{request.param}.ts", "text": "", "ast": program})
    return unit, f"sql-{request.param}"


@pytest.fixture
def safe_handler(estree):
    es = estree
    command = es(
        "NewExpression",
        callee=es.ident("PutObjectCommand"),
        arguments=[
            es.obj(
                es.prop("Bucket", es.ident("bucketName")),
                es.prop("ServerSideEncryption", es.literal("AES256")),
            )
        ],
    )
    program = es.program(
        es.expr(es.call(es.member("s3", "send"), command)),
        es.expr(es.call(es.member("console", "error"), es.literal("Error in secure handler"), es.ident("err"))),
    )
    return unit_from_estree({"id": "safe.ts", "text": "", "ast": program})
