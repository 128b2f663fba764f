"""Dynamic prompt construction and the fixed texts used when generation fails."""

from typing import Mapping, Optional

from citabot.schemas.appointment_schema import Appointment

GENERIC_GREETING = "¡Hola! ¿En qué puedo ayudarte hoy?"
REPEAT_QUESTION = "Disculpa, ¿podrías repetir tu pregunta?"
START_BOOKING_FALLBACK = "¡Perfecto! Vamos a agendar tu cita. ¿Cuál es tu nombre completo?"
SAVE_RETRY_MESSAGE = (
    "Lo siento, no pude guardar tu cita en este momento. 😔 "
    "Escríbeme de nuevo en un momento y lo intento otra vez."
)

# Context handed to the text generator for each conversation topic.
TOPIC_CONTEXTS: dict[str, str] = {
    "pricing": (
        "El cliente pregunta sobre servicios o precios. Proporciona información "
        "detallada y clara de los servicios disponibles."
    ),
    "hours": "El cliente pregunta sobre horarios. Proporciona los horarios de atención claramente.",
    "location": (
        "El cliente pregunta sobre ubicación. Proporciona la dirección completa y "
        "referencias útiles."
    ),
    "general": "Responde de manera útil y natural según la información del negocio.",
}


def build_slot_request_context(collected: Mapping[str, str], slot_display_name: str) -> str:
    """Instruction asking the generator for exactly one missing slot."""
    known = ", ".join(f"{key}: {value}" for key, value in collected.items()) or "ninguno"
    return (
        f"Estamos agendando una cita. Datos ya recopilados: {known}. "
        f"Pide ÚNICAMENTE: {slot_display_name}. NO repitas preguntas. "
        "NO pidas teléfono. 1-2 líneas máximo."
    )


def slot_request_fallback(slot_display_name: str) -> str:
    return f"Por favor, dime tu {slot_display_name}:"


def build_welcome_prompt(agent_name: str, business_type: str, tone: str) -> str:
    return (
        f"Genera un mensaje de bienvenida breve (2-3 líneas) para {agent_name}, "
        f"un {business_type}.\n\n"
        "Incluye:\n"
        "- Saludo amigable\n"
        "- Mención de que pueden preguntar sobre servicios, horarios o agendar cita\n"
        "- Un emoji apropiado\n\n"
        f"Tono: {tone}\n\n"
        "RESPONDE SOLO CON EL MENSAJE, SIN EXPLICACIONES."
    )


def welcome_fallback(agent_name: Optional[str]) -> str:
    if not agent_name:
        return GENERIC_GREETING
    return (
        f"¡Hola! Bienvenido a {agent_name} 👋\n\n"
        "Puedo ayudarte con información sobre nuestros servicios, horarios o "
        "agendar una cita. ¿En qué te puedo ayudar?"
    )


def build_confirmation_prompt(appointment: Appointment, agent_name: str) -> str:
    """Instruction for a short, enthusiastic booking confirmation."""
    lines = [
        "Genera un mensaje de confirmación de cita breve y profesional.",
        "",
        "Datos de la cita:",
        f"- Nombre: {appointment.client_name}",
        f"- Servicio: {appointment.service}",
    ]
    if appointment.worker:
        lines.append(f"- Atiende: {appointment.worker}")
    lines.extend([
        f"- Fecha: {appointment.normalized_date}",
        f"- Hora: {appointment.normalized_time}",
        f"- Negocio: {agent_name}",
        "",
        "Incluye:",
        "- Confirmación entusiasta",
        "- Resumen de los datos",
        "- Agradecimiento",
        "- Un emoji apropiado",
        "",
        "Máximo 4-5 líneas.",
    ])
    return "\n".join(lines)


def confirmation_fallback(appointment: Appointment) -> str:
    text = "¡Perfecto! 🎉 Tu cita ha sido agendada exitosamente.\n\n"
    text += "📋 Resumen:\n"
    text += f"👤 {appointment.client_name}\n"
    text += f"✂️ {appointment.service}\n"
    if appointment.worker:
        text += f"💈 Con: {appointment.worker}\n"
    text += f"📅 {appointment.normalized_date} a las {appointment.normalized_time}\n\n"
    text += "¡Te esperamos! 😊"
    return text


def rephrase_request(slot: str, bookable_times: Optional[list[str]] = None) -> str:
    """Ask again for a date or time that could not be understood."""
    if slot == "date":
        return (
            "No logré entender la fecha 🤔 ¿Qué día te gustaría venir? "
            "Puedes decirme un día de la semana (por ejemplo: lunes) o una fecha como 15/01/2026."
        )
    hours = f" Horarios disponibles: {', '.join(bookable_times)}." if bookable_times else ""
    return f"No logré entender la hora 🤔 ¿A qué hora te gustaría venir?{hours}"


# --- Cancellation ---

def cancellation_instructions(display_name: str) -> str:
    who = f", {display_name}" if display_name else ""
    return (
        f"Para cancelar tu cita{who}, necesito los siguientes datos:\n\n"
        "📅 *Fecha de tu cita:* DD/MM/YYYY\n"
        "🕐 *Hora de tu cita:* HH:MM\n\n"
        'Ejemplo: "Cancelar cita 15/01/2026 10:30"\n\n'
        "Por favor envíame los datos de la cita que deseas cancelar."
    )


CANCELLATION_ASK_DATE = "Por favor, indícame la *fecha* de tu cita (DD/MM/YYYY):"
CANCELLATION_ASK_TIME = "Por favor, indícame la *hora* de tu cita (HH:MM):"
CANCELLATION_BAD_FORMAT = "❌ Formato de fecha/hora inválido. Por favor usa el formato: DD/MM/YYYY HH:MM"


def cancellation_success(display_name: str, date_text: str, time_text: str) -> str:
    return (
        "✅ *Cita cancelada exitosamente*\n\n"
        f"👤 *Cliente:* {display_name}\n"
        f"📅 *Fecha:* {date_text}\n"
        f"🕐 *Hora:* {time_text}\n\n"
        "Tu cita ha sido cancelada. Si deseas reagendar, házmelo saber.\n\n"
        "¿Puedo ayudarte en algo más?"
    )


def cancellation_not_found(date_text: str, time_text: str) -> str:
    return (
        "❌ No encontré una cita agendada para:\n\n"
        f"📅 *Fecha:* {date_text}\n"
        f"🕐 *Hora:* {time_text}\n\n"
        "Por favor verifica los datos y vuelve a intentar."
    )


# --- NLU / text generation envelopes ---

def build_analysis_prompt(
    message: str, history: str, scheduling: bool, business_context: str
) -> str:
    """Instruction asking the NLU model for booking intent and slot values as JSON."""
    return f"""Analiza este mensaje y extrae información de agendamiento.

{business_context}

PALABRAS CLAVE DE AGENDAMIENTO:
- agendar, cita, turno, reservar, apartar
- cuando, horario, disponible, puede

HISTORIAL:
{history}

MENSAJE: "{message}"

¿YA ESTÁ AGENDANDO?: {'sí' if scheduling else 'no'}

EXTRAE SOLO LO QUE ESTÁ EN EL MENSAJE:
- nombre (nombre completo del cliente)
- servicio (debe ser uno de los servicios listados arriba)
- barbero/trabajador (si lo menciona, debe ser uno de los listados arriba)
- fecha (DD/MM/YYYY o "mañana", "lunes", etc.)
- hora (HH:MM o "mañana", "tarde")

NO extraigas teléfonos.

RESPONDE EN JSON:
{{
    "wantsToSchedule": true/false,
    "extractedData": {{
        "nombre": "nombre o null",
        "servicio": "servicio o null",
        "barbero": "barbero o null",
        "fecha": "fecha o null",
        "hora": "hora o null"
    }},
    "confidence": 0.0-1.0
}}"""


def build_chat_prompt(history: str, context: str, user_message: str) -> str:
    """User turn wrapping history, per-turn context and the customer's message."""
    return f"""HISTORIAL DE CONVERSACIÓN:
{history}

CONTEXTO ADICIONAL: {context}

MENSAJE DEL CLIENTE: {user_message}

INSTRUCCIONES:
- Responde de manera natural basándote en la información del negocio
- Máximo 3-4 líneas de respuesta
- Sé útil y directo
- Si no sabes algo, dilo claramente

RESPUESTA:"""
