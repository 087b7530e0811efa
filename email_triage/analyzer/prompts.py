from typing import Iterable


def get_classification_prompt(sender: str, subject: str, body: str) -> str:
    return f"""You are an executive assistant analyzing emails for a busy founder/executive.

Email Details:
From: {sender}
Subject: {subject}
Body: {body}

1. Classify the intent into ONE of these categories:
- MEETING_REQUEST: Someone wants to schedule time, mentions meeting/call/discussion
- TASK_REQUEST: Action item or deliverable requested from the recipient
- QUESTION: Needs information, decision, or clarification
- FYI: Informational only, no action needed (updates, confirmations)
- URGENT: Time-sensitive, contains urgent language or immediate deadline
- MARKETING: Promotional, sales, discounts, offers
- NEWSLETTER: Digest, summary, weekly update, automated content

2. Assess the priority based on RISK, URGENCY, and DECISION IMPACT.
HARD RULE: Marketing/Newsletters/Automated-FYI are ALWAYS LOW.
Evaluation Criteria (Score 0-10):
- Has concrete deadline? (+4)
- Urgency language (ASAP, today, EOD)? (+3)
- Action/Approval/Difference-making request? (+3)
- "Blocking" language? (+3)
- Important Sender (Boss/Client)? (+2)
- FYI/CC-only? (-2)
- Marketing? (-5)
Priority Mapping:
- Score >= 7: HIGH (Risk/Blockage if ignored)
- Score 3-6: MEDIUM (Needs action, timing flexible)
- Score <= 2: LOW (No action needed / Safe to ignore)

3. Summarize the email in ONE short sentence (max 10-12 words).

4. Suggest 1-3 concrete next steps. Action types available:
- REPLY: Draft a response
- CREATE_TASK: Convert to actionable task
- SCHEDULE_MEETING: Add to calendar
- FOLLOW_UP: Set reminder to follow up later
- IGNORE: No action needed

IMPORTANT: Respond with ONLY a single JSON object and NO additional text. The JSON must have exactly this structure:
{{
    "intent": "MEETING_REQUEST|TASK_REQUEST|QUESTION|FYI|URGENT|MARKETING|NEWSLETTER",
    "urgency": "HIGH|MEDIUM|LOW",
    "confidence": 0.0-1.0,
    "summary": "One short sentence",
    "reasoning": "1-2 sentences explaining the intent and priority",
    "suggestedActions": [
        {{"type": "REPLY", "description": "Specific next step", "priority": 1}}
    ]
}}

Example (DO NOT include this in your response, just follow the format):
{{
    "intent": "TASK_REQUEST",
    "urgency": "HIGH",
    "confidence": 0.92,
    "summary": "CFO needs budget approval before end of day.",
    "reasoning": "Requests an approval (Action) with a deadline today (Urgency).",
    "suggestedActions": [
        {{"type": "CREATE_TASK", "description": "Review and approve Q3 budget by EOD", "priority": 1}},
        {{"type": "REPLY", "description": "Confirm you will approve today", "priority": 2}}
    ]
}}"""


def get_reply_draft_prompt(sender: str, subject: str, body: str, intent: str) -> str:
    return f"""Draft a professional, concise reply for a busy executive.

Guidelines:
- Tone: Professional but warm and human
- Length: 2-4 sentences maximum
- Be direct and clear
- Match the formality of the original email

Email to reply to:
From: {sender}
Subject: {subject}
Body: {body}

Intent: {intent}

Return ONLY the draft reply text (no JSON, no quotes, no markdown)."""


def get_daily_brief_prompt(emails: Iterable[dict], tasks: Iterable[dict], time_of_day: str) -> str:
    if time_of_day == 'morning':
        focus = "Focus on: Today's priorities, urgent items, key meetings"
    else:
        focus = "Focus on: Unfinished tasks, what needs rescheduling, tomorrow's prep"

    email_lines = "\n".join(
        f"- From: {e['from']}, Subject: {e['subject']}, Urgency: {e['urgency']}" for e in emails
    )
    task_lines = "\n".join(
        f"- {t['title']} ({t['priority']}, Due: {t['dueDate'] or 'No deadline'})" for t in tasks
    )

    return f"""Create a {time_of_day} brief for a busy founder/executive.

{focus}

Recent Emails (last 24h):
{email_lines}

Current Tasks:
{task_lines}

IMPORTANT: Respond with ONLY a single JSON object and NO additional text. The JSON must have exactly this structure:
{{
    "summary": "Brief overview of the day/evening",
    "priorities": [
        {{
            "item": "Respond to client meeting request",
            "reason": "High urgency, needs confirmation by EOD",
            "action": "Reply to confirm Tuesday 3pm"
        }}
    ],
    "suggestions": [
        "Reschedule low-priority task 'Review blog post' to next week"
    ]
}}

Keep it concise and actionable. Max 3-5 priorities."""
