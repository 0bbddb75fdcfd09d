"""Prompt text sent to the chat and vision models.

Prompts are in Spanish, the language of the stored documents, and ask for a
bare JSON object so the response can be validated with pydantic.
"""

import math
from typing import Callable

from twindata.errors import InvalidInputError
from twindata.models.vision import PhotoContext

TOKENS_PER_SUBCHAPTER = 700
MAX_SUBCHAPTERS = 15
HOMES_PROMPT = "Homes"


def subchapter_count(total_tokens: int, tokens_per_subchapter: int = TOKENS_PER_SUBCHAPTER) -> int:
    """Number of sub-topics to ask for, between 1 and ``MAX_SUBCHAPTERS``."""
    return max(1, min(MAX_SUBCHAPTERS, math.ceil(total_tokens / tokens_per_subchapter)))


def build_subdivision_prompt(content: str, chapter_title: str, count: int) -> str:
    part_size = len(content) // max(count, 1)
    return f"""Divide este capítulo en exactamente {count} subcapítulos.

REGLAS:
1. Divide el texto en {count} partes de tamaño parecido
2. Copia el texto tal como aparece, palabra por palabra
3. Escribe un título descriptivo para cada subcapítulo
4. No resumas ni modifiques el texto original
5. Cada subcapítulo debe tener unos {part_size} caracteres

TITULO DEL CAPITULO: {chapter_title}

CONTENIDO A DIVIDIR:
{content}

FORMATO JSON REQUERIDO:
{{
  "capitulo": {{
    "titulo": "{chapter_title}",
    "Total_Subcapitulos": {count},
    "subtemas": [
      {{
        "title": "Título descriptivo del subcapítulo",
        "texto": "Texto exacto del subcapítulo",
        "descripcion": "Breve descripción del contenido del subcapítulo"
      }}
    ]
  }}
}}

IMPORTANTE:
- Responde solo con JSON válido
- No uses ```json al inicio
- Devuelve exactamente {count} subtemas
- Todo el texto original debe aparecer en algún subcapítulo"""


def build_homes_prompt(context: PhotoContext, user_description: str) -> str:
    return f"""Eres un analista de imágenes especializado en espacios residenciales,
decoración de interiores y arquitectura doméstica.

CONTEXTO DE LA FOTO:
- Archivo: {context.file_name}
- Descripción adicional: {context.description}
- Fecha tomada: {context.date_taken}
- Ubicación: {context.location}
- País: {context.country}
- Lugar específico: {context.place}
- Personas en la foto: {context.people_in_photo}
- Etiquetas: {context.tags}
- Categoría: {context.category}
- Tipo de evento: {context.event_type}
- Descripción del usuario: {user_description}

TAREA:
Analiza la imagen del espacio y responde con un objeto JSON que incluya:
1. descripcionGenerica: descripción técnica breve (máximo 200 caracteres)
2. detailsHTML: el análisis completo en HTML limpio con estilos CSS en línea, sin saltos de línea literales
3. analisis_arquitectonico: tipo de espacio, estilo, metros cuadrados aproximados,
   elementos estructurales, distribución
4. elementos_decorativos: mobiliario y decoración con material, color y estado
5. analisis_espacial: distribución, iluminación y funcionalidad
6. caracteristicas_tecnicas: materiales, acabados e instalaciones
7. evaluacion_general: valoración del diseño del espacio

Calcula los metros cuadrados a partir de muebles y alturas visibles.
Indica siempre un tipo de espacio, aunque sea una estimación.
Si no conoces un dato deja el valor vacío, pero devuelve todas las claves.

FORMATO DE RESPUESTA:
{{
  "descripcionGenerica": "",
  "detailsHTML": "<div></div>",
  "analisis_arquitectonico": {{"tipo_de_espacio": "", "estilo_arquitectonico": "", "TotalMetrosCuadrados": ""}},
  "elementos_decorativos": {{"mobiliario": [], "decoracion": []}},
  "analisis_espacial": {{"iluminacion": "", "distribucion": "", "funcionalidad": ""}},
  "caracteristicas_tecnicas": {{"materiales": [], "acabados": [], "instalaciones": []}},
  "evaluacion_general": {{"puntos_fuertes": [], "mejoras_sugeridas": [], "reflexion": ""}}
}}

Responde solo con JSON válido, sin ```json."""


PHOTO_PROMPTS: dict[str, Callable[[PhotoContext, str], str]] = {
    HOMES_PROMPT: build_homes_prompt,
}


def build_photo_prompt(prompt_name: str, context: PhotoContext, user_description: str) -> str:
    """Render the named photo analysis prompt.

    Raises:
        InvalidInputError: If no prompt is registered under ``prompt_name``.
    """
    builder = PHOTO_PROMPTS.get(prompt_name)
    if builder is None:
        raise InvalidInputError(f"unknown photo prompt '{prompt_name}'")
    return builder(context, user_description)


__all__ = [
    "HOMES_PROMPT",
    "MAX_SUBCHAPTERS",
    "PHOTO_PROMPTS",
    "TOKENS_PER_SUBCHAPTER",
    "build_homes_prompt",
    "build_photo_prompt",
    "build_subdivision_prompt",
    "subchapter_count",
]
