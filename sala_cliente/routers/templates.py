# sala_cliente/routers/templates.py
# =================================================================================
# 📄 Plantillas del abogado
# - /api/templates/contracts       → contratos en archivo (pdf/doc/docx)
# - /api/templates/questionnaires  → cuestionarios con preguntas ordenadas
# Cada usuario solo ve y gestiona sus propias plantillas.
# =================================================================================

from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from sala_cliente import models, schemas, storage
from sala_cliente.core.security import get_current_user
from sala_cliente.crud import audit_crud, templates_crud
from sala_cliente.db import get_db
from sala_cliente.utils.uploads import CONTRACT_EXTENSIONS, read_upload

router = APIRouter(prefix="/api/templates", tags=["templates"])


def _audit(db: Session, user: models.Profile, action: str, resource_type: str, resource_id: str, details=None) -> None:
    audit_crud.log_action(
        db,
        action=action,
        organization_id=user.organization_id,
        user_id=user.id,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
    )

# =================================================================================
# 📄 Contratos
# =================================================================================
@router.get("/contracts", response_model=List[schemas.ContractTemplateOut])
def list_contracts(db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    return templates_crud.list_contracts(db, current_user.id)


@router.post("/contracts", response_model=schemas.ContractTemplateOut, status_code=status.HTTP_201_CREATED)
def upload_contract(
    name: str = Form(..., min_length=2, max_length=200),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    data, ext = read_upload(file, CONTRACT_EXTENSIONS)
    template = templates_crud.create_contract(db, current_user, name=name.strip(), data=data, ext=ext)
    _audit(db, current_user, "contract_template_created", "contract_template", template.id,
           {"name": template.name, "file_size": template.file_size_bytes})
    db.commit()
    db.refresh(template)
    return template


@router.get("/contracts/{template_id}", response_model=schemas.ContractTemplateOut)
def get_contract(template_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    return templates_crud.get_contract(db, current_user.id, template_id)


@router.patch("/contracts/{template_id}", response_model=schemas.ContractTemplateOut)
def rename_contract(
    template_id: str,
    payload: schemas.ContractTemplateRename,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    template = templates_crud.get_contract(db, current_user.id, template_id)
    old_name = template.name
    template.name = payload.name.strip()
    _audit(db, current_user, "contract_template_renamed", "contract_template", template.id,
           {"old_name": old_name, "name": template.name})
    db.commit()
    db.refresh(template)
    return template


@router.get("/contracts/{template_id}/download")
def download_contract(template_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    template = templates_crud.get_contract(db, current_user.id, template_id)
    if not storage.exists(template.file_url):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Archivo no encontrado")
    ext = storage.file_extension(template.file_url)
    return FileResponse(storage.resolve(template.file_url), filename=f"{template.name}.{ext}")


@router.delete("/contracts/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contract(template_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    """Las salas que la usaban quedan sin contrato (FK a NULL)."""
    template = templates_crud.get_contract(db, current_user.id, template_id)
    _audit(db, current_user, "contract_template_deleted", "contract_template", template.id, {"name": template.name})
    templates_crud.delete_contract(db, template)
    db.commit()

# =================================================================================
# 📝 Cuestionarios
# =================================================================================
@router.get("/questionnaires", response_model=List[schemas.QuestionnaireSummary])
def list_questionnaires(db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    return [
        schemas.QuestionnaireSummary(id=t.id, name=t.name, created_at=t.created_at, questions_count=n)
        for t, n in templates_crud.list_questionnaires(db, current_user.id)
    ]


@router.post("/questionnaires", response_model=schemas.QuestionnaireOut, status_code=status.HTTP_201_CREATED)
def create_questionnaire(
    payload: schemas.QuestionnaireCreate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    template = templates_crud.create_questionnaire(db, current_user, name=payload.name.strip(), questions=payload.questions)
    db.flush()
    _audit(db, current_user, "questionnaire_created", "questionnaire_template", template.id,
           {"name": template.name, "questions": len(payload.questions)})
    db.commit()
    db.refresh(template)
    return template


@router.get("/questionnaires/{template_id}", response_model=schemas.QuestionnaireOut)
def get_questionnaire(template_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    return templates_crud.get_questionnaire(db, current_user.id, template_id)


@router.patch("/questionnaires/{template_id}", response_model=schemas.QuestionnaireOut)
def update_questionnaire(
    template_id: str,
    payload: schemas.QuestionnaireUpdate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    template = templates_crud.get_questionnaire(db, current_user.id, template_id)
    templates_crud.update_questionnaire(
        db,
        template,
        name=payload.name.strip() if payload.name else None,
        questions=payload.questions,
    )
    _audit(db, current_user, "questionnaire_updated", "questionnaire_template", template.id,
           {"fields": sorted(payload.model_dump(exclude_unset=True))})
    db.commit()
    db.refresh(template)
    return template


@router.delete("/questionnaires/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_questionnaire(template_id: str, db: Session = Depends(get_db), current_user: models.Profile = Depends(get_current_user)):
    template = templates_crud.get_questionnaire(db, current_user.id, template_id)
    templates_crud.delete_questionnaire(db, template)
    _audit(db, current_user, "questionnaire_deleted", "questionnaire_template", template_id, {"name": template.name})
    db.commit()
