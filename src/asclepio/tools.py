"""Tool declarations and instructions sent to the realtime model."""

from __future__ import annotations

from typing import Any, Dict, List

ADD_NOTE = "addNote"
ANSWER_QUESTION = "answerQuestion"
PROVIDE_CONTEXT = "provideContext"

REQUIRED_ARGS = {
    ADD_NOTE: ("tip",),
    ANSWER_QUESTION: ("question", "answer"),
    PROVIDE_CONTEXT: ("topic", "explanation"),
}

SYSTEM_PROMPT = (
    "Eres Asclepio, un asistente experto que escucha en tiempo real una clase o "
    "reunión en español. Mientras escuchas: cuando se mencione un punto clave, una "
    "tarea o algo importante que recordar, llama a addNote; cuando alguien haga una "
    "pregunta directa y conozcas la respuesta, llama a answerQuestion; cuando se "
    "mencione un concepto o tema importante que convenga explicar, llama a "
    "provideContext si está disponible. No respondas nunca con texto ni con voz. "
    "Tu única salida debe ser a través de las llamadas a funciones. La velocidad y "
    "la relevancia son clave."
)


def _function(name: str, description: str, properties: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "description": description,
        "parameters": {
            "type": "object",
            "properties": properties,
            "required": list(REQUIRED_ARGS[name]),
        },
    }


ADD_NOTE_TOOL = _function(
    ADD_NOTE,
    "Usa esta función para añadir un tip importante, una tarea o un punto clave a las notas.",
    {
        "tip": {
            "type": "string",
            "description": (
                "El contenido del tip o tarea. Por ejemplo: \"Recordar investigar "
                "las fases del neurodesarrollo humano.\""
            ),
        }
    },
)

ANSWER_QUESTION_TOOL = _function(
    ANSWER_QUESTION,
    "Usa esta función cuando se hace una pregunta directa y conoces la respuesta.",
    {
        "question": {
            "type": "string",
            "description": (
                "La pregunta que se hizo. Por ejemplo: \"¿Cuál es el antídoto del "
                "paracetamol?\""
            ),
        },
        "answer": {
            "type": "string",
            "description": "La respuesta a la pregunta. Por ejemplo: \"N-acetilcisteína.\"",
        },
    },
)

PROVIDE_CONTEXT_TOOL = _function(
    PROVIDE_CONTEXT,
    (
        "Usa esta función para proporcionar una breve explicación de un concepto o "
        "tema importante que se menciona en la conversación."
    ),
    {
        "topic": {
            "type": "string",
            "description": "El tema o concepto a explicar. Por ejemplo: \"Taponamiento cardíaco\".",
        },
        "explanation": {
            "type": "string",
            "description": "Una explicación concisa y clara del tema.",
        },
    },
)


def build_tool_schemas(contextualize: bool) -> List[Dict[str, Any]]:
    tools = [ADD_NOTE_TOOL, ANSWER_QUESTION_TOOL]
    if contextualize:
        tools.append(PROVIDE_CONTEXT_TOOL)
    return tools


def declared_names(tools: List[Dict[str, Any]]) -> frozenset:
    return frozenset(tool["name"] for tool in tools)
