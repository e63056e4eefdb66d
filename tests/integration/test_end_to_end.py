import json

import httpx
import pytest

from postmark_client.client import PostmarkClient
from postmark_client.errors import DeliveryError, TransportError
from postmark_client.models import Attachment, Email, EmailWithTemplate, Header


def _fake_postmark(received: list):
    """Emulate the four Postmark send endpoints behind an httpx.MockTransport."""

    def ack(to, error_code=0, message='OK'):
        return {
            'To': to,
            'SubmittedAt': '2024-05-01T10:00:00.1234567Z',
            'MessageID': f'msg-{len(received)}',
            'ErrorCode': error_code,
            'Message': message,
        }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get('X-Postmark-Server-Token') != 'server-token':
            return httpx.Response(401, json={'ErrorCode': 10, 'Message': 'Bad or missing API token'})

        body = json.loads(request.content)
        received.append((request.url.path, body))

        if request.url.path == '/email':
            if body['To'].endswith('@blocked.test'):
                return httpx.Response(200, json=ack(body['To'], 406, 'Inactive recipient'))
            return httpx.Response(200, json=ack(body['To']))
        if request.url.path == '/email/batch':
            return httpx.Response(200, json=[ack(m['To']) for m in body])
        if request.url.path == '/email/withTemplate':
            return httpx.Response(200, json=ack(body['To']))
        if request.url.path == '/email/batchWithTemplates':
            return httpx.Response(200, json=[ack(m['To']) for m in body['Messages']])
        return httpx.Response(404, json={'ErrorCode': 404, 'Message': 'Not found'})

    return handler


@pytest.mark.asyncio
async def test_end_to_end_sending():
    """Drive every operation through a real httpx.AsyncClient."""
    received: list = []
    transport = httpx.MockTransport(_fake_postmark(received))

    async with httpx.AsyncClient(transport=transport) as http:
        client = PostmarkClient(http, 'server-token', 'account-token', base_url='https://postmark.test')

        # ------------------------------------------------------------------
        # 1. Single send with headers and attachments
        # ------------------------------------------------------------------
        res = await client.send_email(Email(
            from_='sender@example.com',
            to='a@example.com',
            subject='Invoice',
            html_body='<p>Attached</p>',
            headers=[Header(name='X-Invoice', value='7')],
            attachments=[Attachment(name='invoice.pdf', content='JVBERi0=', content_type='application/pdf')],
        ))
        assert res.to == 'a@example.com'
        assert res.submitted_at.microsecond == 123456

        # ------------------------------------------------------------------
        # 2. Delivery-level rejection keeps the decoded response
        # ------------------------------------------------------------------
        with pytest.raises(DeliveryError) as info:
            await client.send_email(Email(from_='sender@example.com', to='x@blocked.test', text_body='hi'))
        assert info.value.response.to == 'x@blocked.test'

        # ------------------------------------------------------------------
        # 3. Batches, plain and templated
        # ------------------------------------------------------------------
        batch = await client.send_email_batch([
            Email(from_='sender@example.com', to='b@example.com', text_body='1'),
            Email(from_='sender@example.com', to='c@example.com', text_body='2'),
        ])
        assert [r.to for r in batch] == ['b@example.com', 'c@example.com']

        templated = await client.send_batch_email_with_template([
            EmailWithTemplate(template_alias='welcome', from_='team@example.com', from_name='Team', to='d@example.com'),
            EmailWithTemplate(template_alias='welcome', from_='team@example.com', to='e@example.com', to_name='Eve'),
        ])
        assert [r.to for r in templated] == ['d@example.com', '"Eve" e@example.com']

        single = await client.send_email_with_template(
            EmailWithTemplate(template_id=42, template_model={'n': 1}, to='f@example.com')
        )
        assert single.error_code == 0

    # ----------------------------------------------------------------------
    # 4. Assertions on what reached the wire
    # ----------------------------------------------------------------------
    paths = [path for path, _ in received]
    assert paths == ['/email', '/email', '/email/batch', '/email/batchWithTemplates', '/email/withTemplate']
    assert received[0][1]['Attachments'][0] == {
        'Name': 'invoice.pdf',
        'Content': 'JVBERi0=',
        'ContentType': 'application/pdf',
    }
    assert received[3][1]['Messages'][0]['From'] == '"Team" team@example.com'


@pytest.mark.asyncio
async def test_end_to_end_connection_failure():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError('connection refused', request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
        client = PostmarkClient(http, 'server-token', 'account-token')
        with pytest.raises(TransportError):
            await client.send_email(Email(from_='a@example.com', to='b@example.com', text_body='x'))
