"""
Template registry.

Built-in Spanish prompt templates for the three LLM tasks. A templates
directory can override any of them with a `<name>.tmpl` file.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)

INTENT_DETECTION = "intent-detection"
ENTITY_EXTRACTION = "contextual-entity-extraction"
USER_RESPONSE = "user-response"

_CONTEXT_HEADER = """### CONTEXTO CONVERSACIONAL ###
{{#if context.user_profile.is_registered}}
Usuario registrado: {{context.user_profile.name}} ({{context.user_profile.email}})
{{#if context.user_profile.company}}Empresa: {{context.user_profile.company}}
{{/if}}{{#if context.user_profile.position}}Cargo: {{context.user_profile.position}}
{{/if}}{{else}}
Usuario no registrado
{{/if}}
{{#if context.known_entities}}
Información conocida del usuario:
{{#each context.known_entities}}- {{@key}}: {{this}}
{{/each}}{{/if}}
"""

BUILTIN_TEMPLATES: Dict[str, str] = {
    INTENT_DETECTION: """Eres un especialista en análisis de intenciones para un chatbot de WhatsApp que ayuda con un sistema {{service.type}} empresarial.

""" + _CONTEXT_HEADER + """{{#if context.current_topic}}
Tema actual de conversación: {{context.current_topic}}
Fuerza del contexto: {{context.context_strength}}
{{/if}}{{#if context.recent_intents}}Intenciones recientes: {{JSON.stringify context.recent_intents}}
{{/if}}
### INSTRUCCIONES ###
Analiza el mensaje actual del usuario considerando TODO el contexto conversacional.

1. Identifica TODAS las intenciones presentes en el mensaje.
2. Considera si el usuario continúa con el tema actual o cambia de tema.
3. Si hay ambigüedad, prioriza la coherencia contextual.
4. Si el usuario confirma algo, considera qué está confirmando según el contexto.

INTENCIONES POSIBLES:
{{#each supported_intents}}- {{this}}
{{/each}}
### EJEMPLOS DE INTENCIONES ###
{{#each intent_examples}}**{{@key}}**:
{{#each this}}- "{{this}}"
{{/each}}{{/each}}
### IMPORTANTE ###
- Un mensaje puede tener MÚLTIPLES intenciones simultáneamente.
- Usa EXACTAMENTE los nombres de intenciones tal como aparecen en la lista.
- Si un mensaje no contiene ninguna intención reconocible, devuelve un array vacío.

Formato de respuesta requerido:
{"intents": ["intencion1", "intencion2"]}""",

    ENTITY_EXTRACTION: """Eres un especialista en extracción de entidades para un chatbot empresarial de WhatsApp.

""" + _CONTEXT_HEADER + """
### INSTRUCCIONES ###
Extrae SOLO las entidades nuevas o actualizadas presentes en el mensaje actual.

ENTIDADES A BUSCAR:
{{#each supported_entities}}- {{this}}
{{/each}}
### EJEMPLOS DE ENTIDADES ###
{{#each entity_examples}}**{{@key}}**:
{{#each this}}- "{{this}}"
{{/each}}{{/each}}
### REGLAS ESPECIALES ###
1. NO repitas entidades que ya están en el contexto a menos que el usuario las esté corrigiendo.
2. Si el usuario confirma información ("sí", "correcto"), NO extraigas entidades a menos que agregue información nueva.
3. Prioriza información explícita sobre implícita.
4. Si hay ambigüedad, no asumas.

Responde ÚNICAMENTE con JSON válido.

Formato de respuesta requerido:
{"entidad": "valor"}""",

    USER_RESPONSE: """Eres un asistente virtual de WhatsApp para {{service.name}}, un sistema {{service.type}} diseñado para gestionar procesos empresariales. Tu objetivo es proporcionar información, ayudar a los usuarios a obtener acceso de prueba ({{service.trial_duration}} días) y resolver dudas técnicas básicas.

### CONTEXTO ACTUAL ###
- Mensaje del usuario: "{{message}}"
- Intenciones detectadas: {{JSON.stringify intents}}
- Entidades extraídas: {{JSON.stringify entities}}
- Información del usuario: {{#if context.user_profile.is_registered}}{{context.user_profile.name}}{{else}}Usuario no registrado{{/if}}
{{#if context.current_topic}}- Tema actual: {{context.current_topic}}
{{/if}}{{#if context.topic_history}}- Temas anteriores: {{JSON.stringify context.topic_history}}
{{/if}}{{#if context.known_entities}}- Datos conocidos: {{JSON.stringify context.known_entities}}
{{/if}}
### CONVERSACIÓN RECIENTE ###
{{#each recent_messages}}{{#if this.is_from_user}}Usuario{{else}}Asistente{{/if}}: {{this.content}}
{{/each}}
### GUÍA DE RESPUESTA ###
1. Saluda al usuario por su nombre si está disponible.
2. Responde de forma directa a la intención principal del usuario.
3. Si el usuario solicita una prueba, guíalo para recopilar la información necesaria (nombre, correo, usuario y contraseña deseados).
4. Si falta información para completar una solicitud, pregunta específicamente por los datos faltantes.
5. Usa un tono amigable, profesional y conciso.

### CARACTERÍSTICAS DEL SERVICIO ###
{{#each service.features}}- {{this}}
{{/each}}
Contacto de soporte: {{service.admin_contact}}
Sitio web: {{service.website_url}}

Responde de manera natural al mensaje del usuario, considerando todo el contexto proporcionado.""",
}


def available_templates(templates_dir: Union[str, Path, None] = None) -> List[str]:
    names = set(BUILTIN_TEMPLATES)
    if templates_dir and Path(templates_dir).is_dir():
        names.update(path.stem for path in Path(templates_dir).glob("*.tmpl"))
    return sorted(names)


def load_template(name: str, templates_dir: Union[str, Path, None] = None) -> Optional[str]:
    """
    Look up a template by name.

    A `<name>.tmpl` file in templates_dir wins over the built-in. An
    unreadable override falls back to the built-in.

    Returns:
        Template text, or None when the name is unknown
    """
    if templates_dir:
        path = Path(templates_dir) / f"{name}.tmpl"
        if path.is_file():
            try:
                return path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning(f"Could not read template override {path}: {str(e)}")

    template = BUILTIN_TEMPLATES.get(name)
    if template is None:
        logger.error(f"Template not found: {name}")
    return template
