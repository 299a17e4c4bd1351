"""
Function-tool schemas advertised to the realtime voice agent on call accept.
Names match the handlers in agents.tool_runner.
"""

INTAKE_TOOLS: list[dict] = [
    {
        "type": "function",
        "name": "create_lead",
        "description": (
            "Create a new lead/contact once you have the caller's name and phone number. "
            "Call this early in the conversation."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Full name of the caller"},
                "phone": {"type": "string", "description": "Phone number, E.164 or standard format"},
                "email": {"type": "string", "description": "Email address if provided"},
                "source": {
                    "type": "string",
                    "description": "How the lead came in",
                    "enum": ["phone_call", "sms", "web_chat", "referral"],
                },
                "practiceArea": {
                    "type": "string",
                    "description": "The type of legal matter if identifiable",
                    "enum": [
                        "personal_injury", "family_law", "criminal_defense", "immigration",
                        "employment", "real_estate", "estate_planning", "business", "other",
                    ],
                },
            },
            "required": ["name", "phone"],
        },
    },
    {
        "type": "function",
        "name": "save_intake_answers",
        "description": "Save intake answers as you collect them. Call repeatedly; answers merge.",
        "parameters": {
            "type": "object",
            "properties": {
                "answers": {
                    "type": "string",
                    "description": (
                        "JSON object of answers. Keys can include: description, incident_date, "
                        "incident_location, injuries, urgency, best_callback_time, additional_notes"
                    ),
                },
            },
            "required": ["answers"],
        },
    },
    {
        "type": "function",
        "name": "update_lead",
        "description": "Update the lead's status, priority, or summary.",
        "parameters": {
            "type": "object",
            "properties": {
                "status": {
                    "type": "string",
                    "enum": ["new", "contacted", "qualified", "unqualified", "converted", "lost"],
                    "description": "Current status of the lead",
                },
                "priority": {
                    "type": "string",
                    "enum": ["low", "medium", "high", "urgent"],
                    "description": "Priority based on urgency",
                },
                "summary": {"type": "string", "description": "1-2 sentence summary of the matter"},
            },
            "required": [],
        },
    },
    {
        "type": "function",
        "name": "warm_transfer",
        "description": "Request a transfer to a staff member. Only when the caller asks for a person or in emergencies.",
        "parameters": {
            "type": "object",
            "properties": {
                "reason": {"type": "string", "description": "Reason for the transfer"},
                "urgency": {
                    "type": "string",
                    "enum": ["routine", "urgent", "emergency"],
                    "description": "Urgency of the transfer",
                },
            },
            "required": ["reason"],
        },
    },
    {
        "type": "function",
        "name": "end_call",
        "description": "End the call after the intake and log the outcome.",
        "parameters": {
            "type": "object",
            "properties": {
                "outcome": {
                    "type": "string",
                    "enum": [
                        "intake_complete", "transfer_requested", "caller_hangup",
                        "callback_scheduled", "wrong_number",
                    ],
                    "description": "How the call ended",
                },
                "notes": {"type": "string", "description": "Final notes about the call"},
            },
            "required": ["outcome"],
        },
    },
]
