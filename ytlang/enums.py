from enum import Enum


class TokenKind(Enum):
    EOF = "EOF"
    EOL = "EOL"
    UNKNOWN = "Unknown"
    COMMENT = "Comment"
    IDENTIFIER = "Identifier"
    KEYWORD = "Keyword"
    OPERATOR = "Operator"
    DELIMITER = "Delimiter"
    NUMBER = "Number"
    STRING = "String"
    BOOLEAN = "Boolean"
    NULL = "Null"


class NodeTypes(Enum):
    PROGRAM = "Program"
    IDENTIFIER = "Identifier"
    MEMBER_ACCESS = "MemberAccess"
    IMPORT = "Import"
    FUNCTION_DECLARATION = "FunctionDeclaration"
    FUNCTION_PARAM = "FunctionParam"
    FUNCTION_CALL = "FunctionCall"
    RETURN = "Return"
    IF = "If"
    ELSE = "Else"
    WHILE = "While"
    SWITCH = "Switch"
    CASE = "Case"
    BINARY = "Binary"
    PRE_UNARY = "PreUnary"
    POST_UNARY = "PostUnary"
    VARIABLE_DECLARATION = "VariableDeclaration"
    NUMBER_LITERAL = "NumberLiteral"
    STRING_LITERAL = "StringLiteral"
    BOOLEAN_LITERAL = "BooleanLiteral"
    NULL_LITERAL = "NullLiteral"
    COMMENT = "Comment"


class TypeKind(Enum):
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"
    VOID = "void"
    NULL = "null"
