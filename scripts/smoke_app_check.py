import sys
from pathlib import Path

# ensure repo root is on sys.path so `session_hub` package can be imported
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from fastapi.testclient import TestClient
from session_hub.main import app


def run_smoke():
    client = TestClient(app)
    print('GET /health ->', client.get('/health').status_code, client.get('/health').json())

    print('\nPOST /api/session/values ->')
    r = client.post('/api/session/values', json={'name': 'user', 'value': 'smoke-test'})
    print(r.status_code, r.headers.get('set-cookie'))

    print('\nPOST /api/session/flash ->')
    r = client.post('/api/session/flash', json={'name': 'message', 'value': 'hello once'})
    print(r.status_code)

    for _ in range(2):
        print('\nGET /api/session ->')
        r = client.get('/api/session')
        print(r.status_code)
        try:
            print(r.json())
        except ValueError:
            print(r.text)

    print('\nPOST /api/session/destroy ->')
    r = client.post('/api/session/destroy')
    print(r.status_code, r.headers.get('set-cookie'))

    print('\nGET /metrics ->', client.get('/metrics').status_code)


if __name__ == '__main__':
    run_smoke()
