"""
backend/templates/registry.py

Purpose:
- Static catalog of the document kinds clients can submit through a form.
- Each entry declares its fields, an optional ordered list of steps and
  whether a file attachment is mandatory.

Design intent:
- Pure lookup. The lifecycle engine reads the *shape* of a template (step
  count, file requirement) to pick initial and next states; the registry
  itself enforces no transition rule.
- Form payloads are only checked against the field list for display
  purposes (see `missing_required_fields`), never to guard transitions.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


FIELD_TYPES = ('text', 'date', 'number', 'textarea', 'select', 'checkbox', 'file')
CATEGORIES = ('RH', 'Fiscal', 'Contábil', 'Societário', 'Outro')


@dataclass(frozen=True)
class TemplateField:
    """A single form field of a template."""
    id: str
    label: str
    type: str
    required: bool
    options: Tuple[str, ...] = ()
    description: str = ''
    step: Optional[int] = None


@dataclass(frozen=True)
class FileConfig:
    """Attachment rules of a template."""
    accepted_types: str
    is_required: bool


@dataclass(frozen=True)
class TemplateStep:
    title: str


@dataclass(frozen=True)
class DocumentTemplate:
    """
    A document kind clients can fill in.

    Attributes:
        id: Stable slug (e.g. 'rescisao-contrato')
        name: Human name, also used as the created document's name
        category: One of CATEGORIES
        fields: Form fields, possibly tagged with the step they belong to
        file_config: Attachment rules, or None when the template takes no file
        steps: Ordered steps for multi-step workflows, or None for single-step
    """
    id: str
    name: str
    category: str
    fields: Tuple[TemplateField, ...] = ()
    file_config: Optional[FileConfig] = None
    steps: Optional[Tuple[TemplateStep, ...]] = None

    @property
    def total_steps(self) -> int:
        return len(self.steps) if self.steps else 1

    @property
    def is_multi_step(self) -> bool:
        return bool(self.steps) and len(self.steps) > 1

    @property
    def requires_file(self) -> bool:
        return bool(self.file_config and self.file_config.is_required)

    def fields_for_step(self, step: Optional[int] = None) -> List[TemplateField]:
        """Fields shown at `step`; untagged fields belong to every step."""
        if step is None:
            return list(self.fields)
        return [f for f in self.fields if f.step is None or f.step == step]

    def missing_required_fields(self, form_data: Optional[Dict], step: Optional[int] = None) -> List[str]:
        """Ids of required fields absent or blank in `form_data`."""
        data = form_data or {}
        missing = []
        for f in self.fields_for_step(step):
            if not f.required:
                continue
            value = data.get(f.id)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(f.id)
        return missing


ADMISSION_TEMPLATE = DocumentTemplate(
    id='admissao-funcionario',
    name='Admissão de Funcionário',
    category='RH',
    fields=(
        TemplateField('nome_completo', 'Nome Completo', 'text', True),
        TemplateField('cpf', 'CPF', 'text', True),
        TemplateField('rg', 'RG', 'text', True),
        TemplateField('data_nascimento', 'Data de Nascimento', 'date', True),
        TemplateField('endereco', 'Endereço Completo', 'textarea', True),
        TemplateField('cargo', 'Cargo', 'text', True),
        TemplateField('salario', 'Salário (R$)', 'number', True),
        TemplateField('data_admissao', 'Data de Admissão', 'date', True),
        TemplateField('tipo_contrato', 'Tipo de Contrato', 'select', True, options=('CLT', 'PJ', 'Estágio')),
        TemplateField('contrato_experiencia', 'Contrato de Experiência?', 'select', True, options=('Não', 'Sim')),
        TemplateField(
            'dias_experiencia', 'Dias de Experiência', 'number', False,
            description='Preencha apenas se houver contrato de experiência'
        ),
        TemplateField('carteira_trabalho_digital', 'Carteira de Trabalho Digital?', 'checkbox', False),
        TemplateField('ctps_numero', 'Nº da CTPS', 'text', False),
        TemplateField('ctps_serie', 'Série da CTPS', 'text', False),
        TemplateField('pis', 'PIS', 'text', True),
        TemplateField('possui_filhos', 'Possui Filhos?', 'checkbox', False),
    ),
    file_config=FileConfig(accepted_types='application/pdf,image/*', is_required=True),
    steps=None,
)

TERMINATION_TEMPLATE = DocumentTemplate(
    id='rescisao-contrato',
    name='Rescisão de Contrato',
    category='RH',
    fields=(
        TemplateField('nome_funcionario_rescisao', 'Nome do Funcionário', 'text', True, step=1),
        TemplateField('cpf_rescisao', 'CPF do Funcionário', 'text', True, step=1),
        TemplateField('data_aviso_previo', 'Data do Aviso Prévio', 'date', True, step=1),
        TemplateField(
            'motivo_rescisao', 'Motivo da Rescisão', 'select', True, step=1,
            options=('Pedido de demissão', 'Demissão sem justa causa', 'Demissão por justa causa', 'Término de contrato')
        ),
        TemplateField('tipo_aviso_previo', 'Tipo de Aviso Prévio', 'select', True, step=1, options=('Indenizado', 'Trabalhado')),
    ),
    file_config=FileConfig(accepted_types='application/pdf,image/*', is_required=True),
    steps=(
        TemplateStep('Etapa 1: Dados para Geração do Aviso Prévio'),
        TemplateStep('Etapa 2: Anexar Exame Demissional e Documentos'),
    ),
)

VACATION_NOTICE_TEMPLATE = DocumentTemplate(
    id='aviso-ferias',
    name='Aviso de Férias',
    category='RH',
    fields=(
        TemplateField('nome_funcionario_ferias', 'Nome do Funcionário', 'text', True),
        TemplateField('data_inicio_ferias', 'Data de Início das Férias', 'date', True),
        TemplateField('quantidade_dias_ferias', 'Quantidade de Dias', 'number', True),
        TemplateField('vender_ferias', 'Deseja vender 1/3 das férias?', 'select', True, options=('Não', 'Sim')),
        TemplateField('adiantar_13', 'Deseja adiantar 13º Salário?', 'select', True, options=('Não', 'Sim')),
    ),
    file_config=None,
    steps=None,
)


class TemplateRegistry:
    """Read-only lookup over the template catalog."""

    _templates: Dict[str, DocumentTemplate] = {
        t.id: t for t in (ADMISSION_TEMPLATE, TERMINATION_TEMPLATE, VACATION_NOTICE_TEMPLATE)
    }

    @classmethod
    def get_template(cls, template_id) -> Optional[DocumentTemplate]:
        """Return the template with `template_id`, or None when unknown."""
        if not template_id:
            return None
        return cls._templates.get(str(template_id))

    @classmethod
    def all(cls) -> List[DocumentTemplate]:
        return sorted(cls._templates.values(), key=lambda t: (t.category, t.name))

    @classmethod
    def all_ids(cls) -> List[str]:
        return list(cls._templates.keys())
