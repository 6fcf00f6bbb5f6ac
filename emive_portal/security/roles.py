from __future__ import annotations

from typing import Literal

AppRole = Literal[
    "admin",
    "vendedor",
    "projetos",
    "gerente_comercial",
    "implantacao",
    "administrativo",
    "sucesso_cliente",
    "supervisor_operacoes",
]

ROLE_LABELS: dict[str, str] = {
    "admin": "Administrador",
    "vendedor": "Vendedor",
    "projetos": "Projetos",
    "gerente_comercial": "Gerente Comercial",
    "implantacao": "Implantação",
    "administrativo": "Administrativo",
    "sucesso_cliente": "Sucesso do Cliente",
    "supervisor_operacoes": "Supervisor de Operações",
}

MAINTENANCE_MANAGERS = frozenset({"admin", "supervisor_operacoes", "implantacao"})
STOCK_IMPORTERS = frozenset({"admin", "administrativo"})
ENGINEERING_ROLES = frozenset({"admin", "projetos"})
CATALOG_MANAGERS = frozenset({"admin", "gerente_comercial"})


def has_any_role(user: dict, roles: frozenset[str] | set[str]) -> bool:
    return str(user.get("role") or "") in roles
