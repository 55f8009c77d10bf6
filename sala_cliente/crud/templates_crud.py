# sala_cliente/crud/templates_crud.py
# =================================================================================
# 📄 CRUD de plantillas: contratos (archivo) y cuestionarios (preguntas)
# ---------------------------------------------------------------------------------
# Las plantillas pertenecen al usuario que las crea. Subir un contrato guarda
# primero el archivo y, si el INSERT falla, lo borra para no dejar huérfanos.
# =================================================================================

from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sala_cliente import models, storage
from sala_cliente.core.errors import ConflictError, NotFoundError

# ---------------------------------------------------------------------------------
# 📄 Contratos
# ---------------------------------------------------------------------------------

def list_contracts(db: Session, user_id: str) -> List[models.ContractTemplate]:
    return (
        db.query(models.ContractTemplate)
        .filter(models.ContractTemplate.user_id == user_id)
        .order_by(models.ContractTemplate.created_at.desc())
        .all()
    )


def get_contract(db: Session, user_id: str, template_id: str) -> models.ContractTemplate:
    template = (
        db.query(models.ContractTemplate)
        .filter(models.ContractTemplate.id == template_id, models.ContractTemplate.user_id == user_id)
        .first()
    )
    if template is None:
        raise NotFoundError("TEMPLATE_NOT_FOUND", "Plantilla no encontrada")
    return template


def create_contract(
    db: Session,
    owner: models.Profile,
    *,
    name: str,
    data: bytes,
    ext: str,
) -> models.ContractTemplate:
    key = storage.save_bytes(storage.contract_key(owner.id, ext), data)
    try:
        template = models.ContractTemplate(
            user_id=owner.id,
            organization_id=owner.organization_id,
            name=name,
            file_url=key,
            file_size_bytes=len(data),
        )
        db.add(template)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        storage.delete(key)
        logger.exception("Error guardando plantilla de contrato; archivo {} eliminado", key)
        raise
    db.refresh(template)
    return template


def delete_contract(db: Session, template: models.ContractTemplate) -> None:
    storage.delete(template.file_url)
    db.delete(template)

# ---------------------------------------------------------------------------------
# 📝 Cuestionarios
# ---------------------------------------------------------------------------------

def list_questionnaires(db: Session, user_id: str) -> List[Tuple[models.QuestionnaireTemplate, int]]:
    rows = (
        db.query(models.QuestionnaireTemplate, func.count(models.Question.id))
        .outerjoin(models.Question, models.Question.questionnaire_template_id == models.QuestionnaireTemplate.id)
        .filter(models.QuestionnaireTemplate.user_id == user_id)
        .group_by(models.QuestionnaireTemplate.id)
        .order_by(models.QuestionnaireTemplate.created_at.desc())
        .all()
    )
    return [(template, int(n)) for template, n in rows]


def get_questionnaire(db: Session, user_id: str, template_id: str) -> models.QuestionnaireTemplate:
    template = (
        db.query(models.QuestionnaireTemplate)
        .filter(models.QuestionnaireTemplate.id == template_id, models.QuestionnaireTemplate.user_id == user_id)
        .first()
    )
    if template is None:
        raise NotFoundError("TEMPLATE_NOT_FOUND", "Cuestionario no encontrado")
    return template


def _build_questions(texts: List[str]) -> List[models.Question]:
    return [models.Question(question_text=text, order_index=i) for i, text in enumerate(texts)]


def create_questionnaire(
    db: Session,
    owner: models.Profile,
    *,
    name: str,
    questions: List[str],
) -> models.QuestionnaireTemplate:
    template = models.QuestionnaireTemplate(
        user_id=owner.id,
        organization_id=owner.organization_id,
        name=name,
        questions=_build_questions(questions),
    )
    db.add(template)
    return template


def _has_answers(db: Session, template_id: str) -> bool:
    return (
        db.query(models.ClientAnswer.id)
        .join(models.Question, models.Question.id == models.ClientAnswer.question_id)
        .filter(models.Question.questionnaire_template_id == template_id)
        .first()
        is not None
    )


def update_questionnaire(
    db: Session,
    template: models.QuestionnaireTemplate,
    *,
    name: Optional[str] = None,
    questions: Optional[List[str]] = None,
) -> models.QuestionnaireTemplate:
    if name is not None:
        template.name = name
    if questions is not None:
        if _has_answers(db, template.id):
            raise ConflictError(
                "QUESTIONNAIRE_IN_USE",
                "Hay clientes que ya respondieron este cuestionario; crea uno nuevo en lugar de editar las preguntas",
            )
        template.questions.clear()
        db.flush()
        template.questions.extend(_build_questions(questions))
    return template


def delete_questionnaire(db: Session, template: models.QuestionnaireTemplate) -> None:
    if _has_answers(db, template.id):
        raise ConflictError("QUESTIONNAIRE_IN_USE", "El cuestionario tiene respuestas de clientes y no se puede eliminar")
    db.delete(template)
