"""Tests for route handlers and blueprints."""

import logging
from urllib.parse import urlsplit

import pytest
from unittest.mock import patch

from app.services.transport import TransportSource, decode
from app.utils.html_sanitizer import SanitizationFailure
from tests.conftest import extract_csrf_token


class TestDisplayRoutes:
    """Test cases for the display surface."""

    def test_display_page_get(self, client):
        """Test GET request to the display page."""
        response = client.get('/')
        assert response.status_code == 200
        assert b'id="content"' in response.data
        assert b'edit-handoff' in response.data

    def test_display_metadata_from_query(self, client):
        response = client.get('/?title=Hello%20World&description=A%20page&mainImage=https%3A%2F%2Fx.io%2Fa.png')
        assert response.status_code == 200
        assert b'<title>Hello World</title>' in response.data
        assert b'<meta property="og:description" content="A page">' in response.data
        assert b'<meta property="og:image" content="https://x.io/a.png">' in response.data

    def test_display_metadata_is_escaped(self, client):
        response = client.get('/?title=%3Cscript%3Ealert(1)%3C%2Fscript%3E')
        assert b'<script>alert(1)</script>' not in response.data
        assert b'&lt;script&gt;alert(1)&lt;/script&gt;' in response.data

    def test_display_hides_edit_button(self, client):
        response = client.get('/?hideEditButton=true')
        assert response.status_code == 200
        assert b'id="edit-handoff"' not in response.data

    def test_display_json(self, client):
        response = client.get('/?title=T&mainImage=javascript%3Aalert(1)&hideEditButton=true&format=json')
        assert response.status_code == 200
        data = response.get_json()
        assert data['page'] == 'view'
        assert data['metadata'] == {'title': 'T', 'description': '', 'image': ''}
        assert data['hideEditButton'] is True

    def test_display_malformed_query(self, client):
        response = client.get('/?title=%E0%A4%A&description=ok&format=json')
        assert response.status_code == 200
        assert response.get_json()['metadata']['title'] == ''
        assert response.get_json()['metadata']['description'] == 'ok'


class TestHandoffRoutes:
    """Test cases for moving from the display to the authoring surface."""

    def test_handoff_redirects_to_editor(self, client):
        response = client.post('/handoff/edit', data={
            'fragment': '#content=%3Cp%3Ehi%3C%2Fp%3E',
            'query': '?title=T',
        })
        assert response.status_code == 303
        assert response.headers['Location'] == '/edit?title=T#content=%3Cp%3Ehi%3C%2Fp%3E'

        with client.session_transaction() as sess:
            assert sess['handoff_content'] == '<p>hi</p>'
            assert sess['handoff_meta_title'] == 'T'

    def test_handoff_without_content(self, client):
        response = client.post('/handoff/edit', data={'fragment': '', 'query': 'title=T'})
        assert response.status_code == 303
        assert '#' not in response.headers['Location']

    def test_handoff_clears_unconsumed_stash(self, client):
        with client.session_transaction() as sess:
            sess['handoff_meta_title'] = 'Stale'
            sess['handoff_meta_hideEditButton'] = 'true'

        response = client.post('/handoff/edit', data={'fragment': 'content=x', 'query': ''})
        assert response.status_code == 303

        with client.session_transaction() as sess:
            assert 'handoff_meta_title' not in sess
            assert 'handoff_meta_hideEditButton' not in sess
            assert sess['handoff_content'] == 'x'

        page = client.get('/edit').get_data(as_text=True)
        assert 'Stale' not in page

    def test_handoff_requires_post(self, client):
        response = client.get('/handoff/edit')
        assert response.status_code == 405
        assert response.get_json()['error'] == 'method_not_allowed'

    def test_handoff_requires_csrf_token(self, csrf_client):
        response = csrf_client.post('/handoff/edit', data={'fragment': 'content=x'})
        assert response.status_code == 400


class TestEditorRoutes:
    """Test cases for the authoring surface."""

    def test_editor_consumes_handoff(self, client):
        with client.session_transaction() as sess:
            sess['handoff_content'] = '<p>hi</p><script>alert(1)</script>'
            sess['handoff_meta_title'] = 'T'

        response = client.get('/edit')
        assert response.status_code == 200
        page = response.get_data(as_text=True)
        assert '<title>Edit: T</title>' in page
        assert 'value="T"' in page
        assert '<section id="preview" class="page-content"><p>hi</p></section>' in page
        assert '&lt;script&gt;alert(1)&lt;/script&gt;' in page

        with client.session_transaction() as sess:
            assert 'handoff_content' not in sess
            assert 'handoff_meta_title' not in sess

    def test_editor_without_handoff_reads_query(self, client):
        response = client.get('/edit?title=Shared%20page')
        assert response.status_code == 200
        page = response.get_data(as_text=True)
        assert 'value="Shared page"' in page
        # Content comes from the fragment, loaded by the page script
        assert 'api/decode' in page

    def test_editor_is_not_cached(self, client):
        response = client.get('/edit')
        assert 'no-store' in response.headers['Cache-Control']

    def test_editor_submit_redirects_to_share_url(self, client):
        response = client.post('/edit', data={
            'title': 'T',
            'description': '',
            'main_image': 'https://x.io/a.png',
            'content': '<p>x</p>',
        })
        assert response.status_code == 303
        location = response.headers['Location']
        assert urlsplit(location).path == '/'
        envelope = decode(TransportSource.from_url(location))
        assert envelope.content == '<p>x</p>'
        assert envelope.title == 'T'
        assert envelope.main_image == 'https://x.io/a.png'
        assert not envelope.hide_edit_button

    def test_editor_submit_empty_content_has_no_fragment(self, client):
        response = client.post('/edit', data={'title': 'T', 'content': ''})
        assert response.status_code == 303
        assert '#' not in response.headers['Location']

    def test_editor_submit_hide_edit_button(self, client):
        response = client.post('/edit', data={'content': 'x', 'hide_edit_button': 'y'})
        assert 'hideEditButton=true' in response.headers['Location']

    def test_editor_submit_rejects_bad_image_url(self, client):
        response = client.post('/edit', data={'content': 'x', 'main_image': 'javascript:alert(1)'})
        assert response.status_code == 400
        assert b'Main image must be an absolute URL' in response.data

    def test_editor_sanitization_failure(self, client):
        with patch('app.blueprints.view.page.editor.sanitize_html', side_effect=SanitizationFailure('boom')):
            response = client.get('/edit')
        assert response.status_code == 422
        assert b'content is unavailable' in response.data


class TestAPIRoutes:
    """Test cases for the JSON API."""

    def test_render_location(self, client):
        response = client.post('/api/render', json={
            'fragment': '#content=%3Cp%3Ehi%3C%2Fp%3E%3Cscript%3Ealert(1)%3C%2Fscript%3E',
            'query': '?title=T&hideEditButton=true',
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data['html'] == '<p>hi</p>'
        assert data['title'] == 'T'
        assert data['hideEditButton'] is True

    def test_render_malformed_fragment(self, client):
        response = client.post('/api/render', json={'fragment': 'content=%E0%A4%A', 'query': 'title=ok'})
        assert response.status_code == 200
        assert response.get_json()['html'] == ''
        assert response.get_json()['title'] == 'ok'

    def test_render_empty_body(self, client):
        response = client.post('/api/render', data='not json', content_type='text/plain')
        assert response.status_code == 200
        assert response.get_json()['html'] == ''

    def test_render_sanitization_failure(self, client):
        with patch('app.blueprints.api.transport.sanitize_html', side_effect=SanitizationFailure('boom')):
            response = client.post('/api/render', json={'fragment': 'content=x'})
        assert response.status_code == 422
        assert response.get_json()['error'] == 'content_unavailable'

    def test_validation_errors_do_not_log_submitted_values(self, client, caplog):
        with caplog.at_level(logging.WARNING):
            response = client.post('/api/render', json={'fragment': ['<p>private page</p>']})
        assert response.status_code == 400
        assert 'Invalid location' in caplog.text
        assert 'private page' not in caplog.text
        assert 'private page' not in response.get_data(as_text=True)

    def test_decode_location_is_unsanitized(self, client):
        response = client.post('/api/decode', json={'fragment': 'content=%3Cscript%3Ex%3C%2Fscript%3E'})
        assert response.status_code == 200
        assert response.get_json()['envelope'] == {
            'content': '<script>x</script>',
            'title': '',
            'description': '',
            'mainImage': '',
            'hideEditButton': False,
        }

    def test_sanitize(self, client):
        response = client.post('/api/sanitize', json={
            'html': '<img src="data:image/png;base64,AA" onerror="x()"><iframe src="https://evil.example/"></iframe>',
        })
        assert response.status_code == 200
        assert response.get_json()['html'] == '<img><iframe></iframe>'

    def test_sanitize_validation_error(self, client):
        response = client.post('/api/sanitize', json={'html': 123})
        assert response.status_code == 400
        data = response.get_json()
        assert data['error'] == 'Invalid markup payload'
        assert data['details'][0]['field'] == 'html'

    def test_share(self, client):
        response = client.post('/api/share', json={
            'content': '<p>x</p>',
            'title': 'T',
            'hideEditButton': True,
        })
        assert response.status_code == 200
        data = response.get_json()
        assert data['url'] == '/?title=T&hideEditButton=true#content=%3Cp%3Ex%3C%2Fp%3E'
        assert data['fragment'] == 'content=%3Cp%3Ex%3C%2Fp%3E'
        assert data['query'] == {'title': 'T', 'hideEditButton': 'true'}

    def test_share_accepts_field_names(self, client):
        response = client.post('/api/share', json={'main_image': 'https://x.io/a.png'})
        assert response.get_json()['url'] == '/?mainImage=https%3A%2F%2Fx.io%2Fa.png'

    def test_api_requires_csrf_token(self, csrf_client):
        response = csrf_client.post('/api/sanitize', json={'html': '<p>x</p>'})
        assert response.status_code == 400

    def test_api_accepts_csrf_header(self, csrf_client):
        token = extract_csrf_token(csrf_client.get('/').get_data(as_text=True))
        assert token
        response = csrf_client.post('/api/sanitize', json={'html': '<p>x</p>'}, headers={'X-CSRFToken': token})
        assert response.status_code == 200
        assert response.get_json()['html'] == '<p>x</p>'


class TestSecurityHeaders:
    """Test cases for response headers."""

    def test_headers_present(self, client):
        response = client.get('/')
        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['Referrer-Policy'] == 'no-referrer'
        assert 'max-age=' in response.headers['Strict-Transport-Security']

    def test_csp_frame_src_follows_allowlist(self, client):
        csp = client.get('/').headers['Content-Security-Policy']
        assert 'frame-src https://www.youtube.com https://player.vimeo.com;' in csp
        assert '{nonce}' not in csp

    def test_csp_nonce_matches_script(self, client):
        response = client.get('/')
        csp = response.headers['Content-Security-Policy']
        page = response.get_data(as_text=True)
        nonce = csp.split("'nonce-")[1].split("'")[0]
        assert f'<script nonce="{nonce}">' in page

    def test_csp_frame_src_custom_allowlist(self):
        from app import create_app

        app = create_app({
            'TESTING': True,
            'SECRET_KEY': 'test',
            'RATELIMIT_ENABLED': False,
            'SANITIZER_IFRAME_DOMAINS': 'embed.example.org',
        })
        csp = app.test_client().get('/').headers['Content-Security-Policy']
        assert 'frame-src https://embed.example.org;' in csp

    def test_health(self, client):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.get_json() == {'status': 'ok'}

    @pytest.mark.parametrize('path', ['/nonexistent', '/api/nonexistent'])
    def test_404_is_json(self, client, path):
        response = client.get(path)
        assert response.status_code == 404
        assert response.get_json()['error'] == 'not_found'
