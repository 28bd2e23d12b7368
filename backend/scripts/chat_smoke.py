import requests
import sys
import uuid

BASE_URL = "http://localhost:8000/api"


def run_conversation(tenant_id: str = "default"):
    session_id = f"smoke_{uuid.uuid4().hex[:8]}"
    history = []

    print(f"--- Starting Chat Smoke Test (tenant: {tenant_id}, session: {session_id}) ---")

    turns = [
        "hello",
        "sneakers under $100",
        "add the second one to my cart",
        "what's in my cart?",
        "checkout",
    ]
    for message in turns:
        print(f"\n[User]: {message}")
        reply = _send(tenant_id, session_id, message, history)
        if reply is None:
            return
        history.append({"role": "user", "content": message})
        history.append({"role": "assistant", "content": reply})

    cart = requests.get(f"{BASE_URL}/sessions/{tenant_id}/{session_id}/cart").json()
    print(f"\n[Cart after checkout]: {cart['summary']}")


def _send(tenant_id, session_id, message, history):
    payload = {
        "tenantId": tenant_id,
        "sessionId": session_id,
        "message": message,
        "conversationHistory": history,
    }
    try:
        r = requests.post(f"{BASE_URL}/chat", json=payload, timeout=60)
    except requests.RequestException as e:
        print(f"Request failed: {e}")
        return None
    if r.status_code != 200:
        print(f"Error: {r.status_code} {r.text}")
        return None

    data = r.json()
    if data["type"] == "tool_result":
        print(f"[Action]: {data['action']} {data.get('params')} via {data['provider']}")
        text = data.get("groundedText") or ""
    else:
        text = data.get("text") or ""
    print(f"[Assistant]: {text}")
    return text


if __name__ == "__main__":
    run_conversation(sys.argv[1] if len(sys.argv) > 1 else "default")
