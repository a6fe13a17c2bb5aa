"""
cde_advisor — decision support for communication, dissemination and
exploitation (C/D/E) project work.

Entry points:
  cde_advisor.engine.service.DecisionSupportEngine   programmatic API
  cde_advisor.cli.app                                 ``cde-advisor`` CLI
"""
