"""
inkwell/grammar.py
==================

PEG grammar for the contract source language, built with ``parsimonious``.

The grammar recognises the full item / statement / expression surface
syntax a contract file uses.  Expressions are modelled precisely because
the cost classifier walks them; types, patterns, generics, where-clauses
and attribute bodies are recognised but later kept as canonical text.

Conventions
-----------
* Every token rule consumes its own trailing whitespace and comments
  through the ``_`` rule.  The only exception is the terminating ``;`` of
  ``let`` and expression statements, so a statement node ends exactly on
  its semicolon (the instrumentor splices statements by offset).
* Keywords are upper-case rules (``FN``, ``LET``...) matched with a word
  boundary; ``ident`` refuses them.
* Expression rules exist twice: the plain variant and an ``_ns`` variant
  that forbids struct literals at the top level.  The ``_ns`` variant is
  used for ``if``/``while`` conditions, ``match`` scrutinees and ``for``
  iterators, where ``x {`` must open the body rather than a struct literal.
  Parentheses, brackets and braces reset to the plain variant.
* Pure alias rules (``a = b``) are avoided: parsimonious folds them into
  the referenced rule and their visitor method would never run.
"""

from __future__ import annotations

from parsimonious.grammar import Grammar

__all__ = ["RUST_GRAMMAR", "EXPRESSION_RULES", "NO_STRUCT_SUFFIX"]

#: Suffix of the no-struct-literal expression variant.
NO_STRUCT_SUFFIX = "_ns"

#: Expression rules generated in both variants.
EXPRESSION_RULES = (
    "expr", "range_expr", "range_full", "or_expr", "and_expr", "cmp_expr",
    "bitor_expr", "bitxor_expr", "bitand_expr", "shift_expr", "add_expr",
    "mul_expr", "cast_expr", "unary_expr", "postfix_expr",
)

_EXPRESSION_TEMPLATE = r'''
    expr<NS>          = range_expr<NS> (assign_op _ expr<NS>)?
    range_expr<NS>    = range_full<NS> / or_expr<NS>
    range_full<NS>    = or_expr<NS>? range_op _ or_expr<NS>?
    or_expr<NS>       = and_expr<NS> (or_op _ and_expr<NS>)*
    and_expr<NS>      = cmp_expr<NS> (and_op _ cmp_expr<NS>)*
    cmp_expr<NS>      = bitor_expr<NS> (cmp_op _ bitor_expr<NS>)?
    bitor_expr<NS>    = bitxor_expr<NS> (bitor_op _ bitxor_expr<NS>)*
    bitxor_expr<NS>   = bitand_expr<NS> (bitxor_op _ bitand_expr<NS>)*
    bitand_expr<NS>   = shift_expr<NS> (bitand_op _ shift_expr<NS>)*
    shift_expr<NS>    = add_expr<NS> (shift_op _ add_expr<NS>)*
    add_expr<NS>      = mul_expr<NS> (add_op _ mul_expr<NS>)*
    mul_expr<NS>      = cast_expr<NS> (mul_op _ cast_expr<NS>)*
    cast_expr<NS>     = unary_expr<NS> (AS type_no_bounds)*
    unary_expr<NS>    = (unary_op unary_expr<NS>) / postfix_expr<NS>
    postfix_expr<NS>  = primary<NS> postfix_op*
'''

_GRAMMAR_BODY = r'''
    # ═══ FILE & ITEMS ═══════════════════════════════════════════════════

    file            = _ inner_attr* item*

    item            = outer_attr* vis? item_kind
    item_kind       = fn_item / impl_item / struct_item / enum_item / trait_item
                    / const_item / static_item / use_item / mod_item / type_alias
                    / extern_crate / extern_block / macro_item
    stmt_item       = outer_attr* vis? stmt_item_kind
    stmt_item_kind  = fn_item / impl_item / struct_item / enum_item / trait_item
                    / const_item / static_item / use_item / mod_item / type_alias
                    / extern_crate

    fn_item         = fn_qual* FN ident generic_params? "(" _ fn_params? ")" _
                      ret_type? where_clause? fn_body
    fn_qual         = CONST / ASYNC / UNSAFE / (EXTERN abi?)
    fn_body         = block / (";" _)
    fn_params       = fn_param ("," _ fn_param)* ("," _)?
    fn_param        = outer_attr* (self_param / typed_param)
    self_param      = ("&" _ lifetime?)? MUT? SELF type_annot?
    typed_param     = pattern_no_alt type_annot
    type_annot      = ":" _ type
    ret_type        = "->" _ type
    abi             = string_lit _

    impl_item       = UNSAFE? IMPL generic_params? impl_trait? type where_clause?
                      "{" _ inner_attr* item* "}" _
    impl_trait      = "!"? _ type FOR

    struct_item     = STRUCT ident generic_params? struct_body
    struct_body     = (where_clause? struct_fields) / (tuple_fields where_clause? ";" _)
                    / (where_clause? ";" _)
    struct_fields   = "{" _ (field_def ("," _ field_def)* ("," _)?)? "}" _
    field_def       = outer_attr* vis? ident ":" _ type
    tuple_fields    = "(" _ (tuple_field ("," _ tuple_field)* ("," _)?)? ")" _
    tuple_field     = outer_attr* vis? type

    enum_item       = ENUM ident generic_params? where_clause?
                      "{" _ (variant ("," _ variant)* ("," _)?)? "}" _
    variant         = outer_attr* vis? ident (struct_fields / tuple_fields)? ("=" _ expr)?

    trait_item      = UNSAFE? AUTO? TRAIT ident generic_params? (":" _ bounds?)?
                      where_clause? "{" _ inner_attr* item* "}" _

    const_item      = CONST (ident / underscore) ":" _ type ("=" _ expr)? ";" _
    static_item     = STATIC MUT? ident ":" _ type ("=" _ expr)? ";" _

    use_item        = USE use_tree ";" _
    use_tree        = ((simple_path? "::" _)? (("*" _) / use_group))
                    / (simple_path use_rename?)
    use_group       = "{" _ (use_tree ("," _ use_tree)* ("," _)?)? "}" _
    use_rename      = AS (ident / underscore)

    mod_item        = UNSAFE? MOD ident ((";" _) / ("{" _ inner_attr* item* "}" _))
    type_alias      = TYPE ident generic_params? (":" _ bounds)? where_clause?
                      ("=" _ type)? where_clause? ";" _
    extern_crate    = EXTERN CRATE path_ident (AS (ident / underscore))? ";" _
    extern_block    = UNSAFE? EXTERN abi? "{" _ tt* "}" _
    macro_item      = simple_path "!" _ ident? delim_tt (";" _)?

    # ═══ ATTRIBUTES, VISIBILITY, TOKEN TREES ═══════════════════════════

    outer_attr      = "#" _ "[" _ tt* "]" _
    inner_attr      = "#" _ "!" _ "[" _ tt* "]" _
    vis             = PUB vis_scope?
    vis_scope       = "(" _ (CRATE / SELF / SUPER / (IN simple_path)) ")" _

    delim_tt        = paren_tt / bracket_tt / brace_tt
    paren_tt        = "(" _ tt* ")" _
    bracket_tt      = "[" _ tt* "]" _
    brace_tt        = "{" _ tt* "}" _
    tt              = delim_tt / tt_token
    tt_token        = (raw_string / string_lit / char_lit / lifetime
                       / ~r"[^\s()\[\]{}\x22\x27/]+" / "/" / "'") _

    # ═══ GENERICS & TYPES ══════════════════════════════════════════════

    generic_params  = "<" _ (generic_param ("," _ generic_param)* ("," _)?)? ">" _
    generic_param   = outer_attr* (lifetime_param / const_param / type_param)
    lifetime_param  = lifetime (":" _ lifetime ("+" _ lifetime)*)?
    const_param     = CONST ident ":" _ type ("=" _ (block / literal / path_type))?
    type_param      = ident (":" _ bounds?)? ("=" _ type)?
    where_clause    = WHERE (where_pred ("," _ where_pred)* ("," _)?)?
    where_pred      = (lifetime ":" _ lifetime ("+" _ lifetime)*)
                    / (for_lifetimes? type ":" _ bounds?)
    for_lifetimes   = FOR generic_params
    bounds          = bound ("+" _ bound)*
    bound           = lifetime / ("(" _ bound ")" _) / ("?" _ for_lifetimes? path_type)
                    / (for_lifetimes? path_type)

    type            = impl_trait_type / dyn_type / type_no_bounds
    type_no_bounds  = ref_type / ptr_type / tuple_type / array_type / fn_ptr_type
                    / never_type / underscore / qualified_path_type / path_type
    ref_type        = "&" _ lifetime? MUT? type
    ptr_type        = "*" _ (CONST / MUT) type_no_bounds
    tuple_type      = "(" _ (type ("," _ type)* ("," _)?)? ")" _
    array_type      = "[" _ type (";" _ expr)? "]" _
    fn_ptr_type     = for_lifetimes? UNSAFE? (EXTERN abi?)? FN
                      "(" _ (fn_ptr_param ("," _ fn_ptr_param)* ("," _)?)? ")" _ ret_type?
    fn_ptr_param    = (ident ":" _)? type
    never_type      = "!" _
    impl_trait_type = IMPL bounds
    dyn_type        = DYN bounds
    qualified_path_type = qself ("::" _ type_segment)+
    qself           = "<" _ type (AS type)? ">" _
    path_type       = ("::" _)? type_segment ("::" _ type_segment)*
    type_segment    = path_ident (("::" _)? generic_args)? fn_sugar?
    fn_sugar        = "(" _ (type ("," _ type)* ("," _)?)? ")" _ ret_type?
    generic_args    = "<" _ (generic_arg ("," _ generic_arg)* ("," _)?)? ">" _
    generic_arg     = lifetime / assoc_binding / type / block / literal / ("-" _ literal)
    assoc_binding   = ident generic_args? (("=" !"=" _ type) / (":" _ bounds))

    # ═══ STATEMENTS ════════════════════════════════════════════════════

    block           = "{" _ inner_attr* stmt_seq "}" _
    stmt_seq        = stmt_ws* block_tail?
    stmt_ws         = stmt _
    stmt            = empty_stmt / stmt_item / let_stmt / block_stmt / expr_stmt
    empty_stmt      = ";"
    let_stmt        = outer_attr* LET pattern type_annot? let_init? ";"
    let_init        = "=" _ expr let_else?
    let_else        = ELSE block
    block_stmt      = outer_attr* block_like !("." / "?") ";"?
    expr_stmt       = outer_attr* expr ";"
    block_tail      = outer_attr* expr

    # ═══ EXPRESSIONS ═══════════════════════════════════════════════════

    primary         = literal / return_expr / break_expr / continue_expr / closure
                    / block_like / macro_call / struct_lit / path_expr / unit_expr
                    / paren_expr / tuple_expr / array_expr
    primary_ns      = literal / return_expr / break_expr / continue_expr / closure
                    / block_like / macro_call / path_expr / unit_expr
                    / paren_expr / tuple_expr / array_expr

    assign_op       = ~r"<<=|>>=|\+=|-=|\*=|/=|%=|\^=|&=|\|=|=(?![=>])"
    range_op        = ~r"\.\.=|\.\.(?![.=])"
    or_op           = "||"
    and_op          = "&&"
    cmp_op          = ~r"==|!=|<=|>=|<(?![<=])|>(?![>=])"
    bitor_op        = ~r"\|(?![|=])"
    bitxor_op       = ~r"\^(?!=)"
    bitand_op       = ~r"&(?![&=])"
    shift_op        = ~r"<<(?!=)|>>(?!=)"
    add_op          = ~r"[+-](?![=>])"
    mul_op          = ~r"[*/%](?!=)"
    unary_op        = (("&&" / "&") _ MUT?) / (~r"[-!*]" _)

    postfix_op      = method_call_op / await_op / field_op / call_op / index_op / try_op
    method_call_op  = "." _ ident turbofish? "(" _ expr_list? ")" _
    turbofish       = "::" _ generic_args
    await_op        = "." _ AWAIT
    field_op        = "." _ (ident / tuple_index)
    tuple_index     = ~r"[0-9]+" _
    call_op         = "(" _ expr_list? ")" _
    index_op        = "[" _ expr "]" _
    try_op          = "?" _
    expr_list       = expr ("," _ expr)* ("," _)?

    closure         = ASYNC? MOVE? closure_params closure_body
    closure_params  = ("||" _) / ("|" _ (closure_param ("," _ closure_param)* ("," _)?)? "|" _)
    closure_param   = outer_attr* pattern_no_alt type_annot?
    closure_body    = (ret_type block) / expr

    block_like      = if_expr / match_expr / loop_expr / while_expr / for_expr
                    / unsafe_block / async_block / block_expr
    if_expr         = IF cond block else_branch?
    else_branch     = ELSE (if_expr / block_expr)
    cond            = let_chain / expr_ns
    let_chain       = let_cond (and_op _ (let_cond / cmp_expr_ns))*
    let_cond        = LET pattern "=" _ cmp_expr_ns
    match_expr      = MATCH expr_ns "{" _ inner_attr* match_arm* "}" _
    match_arm       = outer_attr* pattern match_guard? "=>" _ arm_body
    match_guard     = IF expr
    arm_body        = (expr arm_end) / (block_like ("," _)?)
    arm_end         = ("," _) / &"}"
    loop_expr       = label? LOOP block
    while_expr      = label? WHILE cond block
    for_expr        = label? FOR pattern IN expr_ns block
    unsafe_block    = UNSAFE block
    async_block     = ASYNC MOVE? block
    block_expr      = label? block
    label           = lifetime ":" _

    macro_call      = simple_path "!" _ delim_tt
    struct_lit      = path_expr "{" _ struct_lit_body "}" _
    struct_lit_body = (struct_field ("," _ struct_field)* ("," _)?)? struct_base?
    struct_field    = outer_attr* (((ident / tuple_index) ":" _ expr) / ident)
    struct_base     = ".." _ expr

    path_expr       = qualified_path_expr / plain_path_expr
    qualified_path_expr = qself ("::" _ expr_segment)+
    plain_path_expr = ("::" _)? expr_segment ("::" _ expr_segment)*
    expr_segment    = path_ident turbofish?
    simple_path     = ("::" _)? path_ident ("::" _ path_ident)*

    unit_expr       = "(" _ ")" _
    paren_expr      = "(" _ expr ")" _
    tuple_expr      = "(" _ expr "," _ expr_list? ")" _
    array_expr      = "[" _ array_body? "]" _
    array_body      = array_repeat / expr_list
    array_repeat    = expr ";" _ expr
    return_expr     = RETURN expr?
    break_expr      = BREAK lifetime? expr?
    continue_expr   = CONTINUE lifetime?

    # ═══ PATTERNS ══════════════════════════════════════════════════════

    pattern         = ("|" !"|" _)? pattern_no_alt ("|" !"|" _ pattern_no_alt)*
    pattern_no_alt  = range_pattern / ref_pattern / tuple_pattern / slice_pattern
                    / literal_pattern / underscore / rest_pattern / struct_pattern
                    / tuple_struct_pattern / ident_pattern / path_pattern
    range_pattern   = range_bound range_pat_op range_bound?
    range_pat_op    = ~r"\.\.=|\.\.\.|\.\.(?!\.)" _
    range_bound     = literal_pattern / path_pattern
    ref_pattern     = ("&&" / "&") _ MUT? pattern_no_alt
    tuple_pattern   = "(" _ (pattern ("," _ pattern)* ("," _)?)? ")" _
    slice_pattern   = "[" _ (pattern ("," _ pattern)* ("," _)?)? "]" _
    literal_pattern = ("-" _)? literal
    rest_pattern    = ".." !~r"[.=]" _
    struct_pattern  = path_pattern "{" _ (field_pattern ("," _ field_pattern)* ("," _)?)? "}" _
    field_pattern   = outer_attr* (rest_pattern / ((ident / tuple_index) ":" _ pattern)
                    / (REF? MUT? ident))
    tuple_struct_pattern = path_pattern "(" _ (pattern ("," _ pattern)* ("," _)?)? ")" _
    ident_pattern   = REF? MUT? ident !"::" ("@" _ pattern_no_alt)?
    path_pattern    = qualified_path_expr / plain_path_expr

    # ═══ LEXICAL ═══════════════════════════════════════════════════════

    literal         = (raw_string / string_lit / char_lit / number / bool_lit) _
    raw_string      = ~r'b?r(#*)".*?"\1's
    string_lit      = ~r'b?"(?:[^"\\]|\\.)*"'s
    char_lit        = ~r"b?'(?:[^'\\\n]|\\u\{[0-9a-fA-F]+\}|\\x[0-9a-fA-F]{2}|\\.)'"
    number          = ~r"(?:0x[0-9a-fA-F_]+|0o[0-7_]+|0b[01_]+|[0-9][0-9_]*(?:\.[0-9][0-9_]*)?(?:[eE][+-]?[0-9_]+)?)(?:[iu](?:8|16|32|64|128|size)|f32|f64)?(?![A-Za-z0-9_])"
    bool_lit        = ~r"(?:true|false)\b"
    lifetime        = ~r"'[A-Za-z_][A-Za-z0-9_]*(?!')" _

    path_ident      = (~r"(?:self|Self|super|crate)\b" _) / ident
    ident           = !keyword ~r"r#[A-Za-z_][A-Za-z0-9_]*|(?!_\b)[A-Za-z_][A-Za-z0-9_]*" _
    underscore      = ~r"_(?![A-Za-z0-9_])" _
    keyword         = ~r"(?:as|async|await|box|break|const|continue|crate|dyn|else|enum|extern|false|fn|for|if|impl|in|let|loop|match|mod|move|mut|pub|ref|return|self|Self|static|struct|super|trait|true|type|unsafe|use|where|while|yield)\b"

    AS              = ~r"as\b" _
    ASYNC           = ~r"async\b" _
    AUTO            = ~r"auto\b" _
    AWAIT           = ~r"await\b" _
    BREAK           = ~r"break\b" _
    CONST           = ~r"const\b" _
    CONTINUE        = ~r"continue\b" _
    CRATE           = ~r"crate\b" _
    DYN             = ~r"dyn\b" _
    ELSE            = ~r"else\b" _
    ENUM            = ~r"enum\b" _
    EXTERN          = ~r"extern\b" _
    FN              = ~r"fn\b" _
    FOR             = ~r"for\b" _
    IF              = ~r"if\b" _
    IMPL            = ~r"impl\b" _
    IN              = ~r"in\b" _
    LET             = ~r"let\b" _
    LOOP            = ~r"loop\b" _
    MATCH           = ~r"match\b" _
    MOD             = ~r"mod\b" _
    MOVE            = ~r"move\b" _
    MUT             = ~r"mut\b" _
    PUB             = ~r"pub\b" _
    REF             = ~r"ref\b" _
    RETURN          = ~r"return\b" _
    SELF            = ~r"self\b" _
    STATIC          = ~r"static\b" _
    STRUCT          = ~r"struct\b" _
    SUPER           = ~r"super\b" _
    TRAIT           = ~r"trait\b" _
    TYPE            = ~r"type\b" _
    UNSAFE          = ~r"unsafe\b" _
    USE             = ~r"use\b" _
    WHERE           = ~r"where\b" _
    WHILE           = ~r"while\b" _

    _               = (~r"(?:\s+|//[^\n]*)+" / block_comment)*
    block_comment   = "/*" (block_comment / ~r"(?:(?!/\*|\*/).)+"s)* "*/"
'''


def _expand_expression_rules() -> str:
    plain = _EXPRESSION_TEMPLATE.replace("<NS>", "")
    no_struct = _EXPRESSION_TEMPLATE.replace("<NS>", NO_STRUCT_SUFFIX)
    return plain + no_struct


def build_grammar() -> Grammar:
    """Assemble the grammar; ``file`` is the default (first) rule."""
    return Grammar(_GRAMMAR_BODY + _expand_expression_rules())


RUST_GRAMMAR = build_grammar()
