"""
Shared fixtures: fake relays, sample RuneMetrics profiles and CML pages.
"""
import os
import json

os.environ.setdefault('STORAGE_BACKEND', 'memory')

import httpx
import pytest

from runetrack.storage import MemoryStore

RELAYS = [
    'https://api.allorigins.win/get?url=',
    'https://api.codetabs.com/v1/proxy?quest=',
    'https://corsproxy.io/?url=',
]
ALLORIGINS = 'api.allorigins.win'
CODETABS = 'api.codetabs.com'
CORSPROXY = 'corsproxy.io'

# CML page padding so documents clear the minimum plausible length
PAGE_PADDING = '<p>' + 'Crystal Math Labs RS3 tracker. ' * 10 + '</p>'


def make_profile(name='Zezima', total_xp=1_500_000_000, total_skill=2500, skills=None, **extra):
    """RuneMetrics profile payload"""
    if skills is None:
        skills = [
            {'id': 0, 'level': 99, 'xp': 140_000_000, 'rank': 1234},
            {'id': 2, 'level': 99, 'xp': 150_000_000, 'rank': 2345},
            {'id': 26, 'level': 120, 'xp': 806_103_330, 'rank': 99},
        ]
    profile = {
        'magic': 12345,
        'questsstarted': 2,
        'totalskill': total_skill,
        'totalxp': total_xp,
        'rank': '1,234',
        'combatlevel': 138,
        'name': name,
        'skillvalues': skills,
    }
    profile.update(extra)
    return profile


def allorigins_body(payload):
    """allorigins nests the fetched body as a string under "contents" """
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return json.dumps({'contents': text, 'status': {'http_code': 200}})


def gains_row(skill, xp='1,000,000', day='+10', week='+1,234', month='+5,000', year='+100,000'):
    return f"<tr><td>{skill}</td><td>{xp}</td><td>{day}</td><td>{week}</td><td>{month}</td><td>{year}</td></tr>"


def cml_page(rows, header=('Skill', 'Exp', 'Day', 'Week', 'Month', 'Year'), table_attrs='class="stats"'):
    header_html = ''
    if header:
        header_html = '<tr>' + ''.join(f'<th>{h}</th>' for h in header) + '</tr>'
    return (
        '<html><head><title>CML</title>'
        '<script>var tracker = "<table><tr><td>Attack</td></tr></table>";</script>'
        '<style>td { color: red; }</style></head><body>'
        '<table class="nav"><tr><td>Home</td><td>Attack guide</td></tr></table>'
        f'{PAGE_PADDING}'
        f'<table {table_attrs}>{header_html}{"".join(rows)}</table>'
        '</body></html>'
    )


def standard_page():
    return cml_page([
        gains_row('Overall', week='+9,999'),
        gains_row('Attack', week='1,234'),
        gains_row('Strength', week='+500'),
        gains_row('Invention', week='+20,000'),
        gains_row('Magic', week='0'),
        gains_row('Defence', week='-15'),
    ])


class FakeRelays:
    """
    httpx transport answering per relay host.

    routes maps host -> (status, body), an exception class to raise, or a
    callable taking the request. Hosts without a route answer 404.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def handler(self, request):
        self.calls.append((request.url.host, str(request.url)))
        route = self.routes.get(request.url.host)
        if route is None:
            return httpx.Response(404, text='no route')
        if isinstance(route, type) and issubclass(route, Exception):
            raise route('relay unreachable', request=request)
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, text=body)

    def hosts(self, target=None):
        return [host for host, url in self.calls if target is None or target in url]

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def route_by_target(profile_route, cml_route):
    """One relay answering RuneMetrics and CML requests differently"""
    def respond(request):
        url = str(request.url)
        route = profile_route if 'runemetrics' in url else cml_route
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, text=body)
    return respond


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def profile_payload():
    return make_profile()
