import json

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from portal.models import File, Notification
from portal.services.files import category_counts, derive_category, file_kind, file_stats


@pytest.mark.parametrize('name, mime, expected', [
    ('2025 개인정보 보호 정책.pdf', 'application/pdf', 'policy'),
    ('Security_Policy_v2.docx', 'application/msword', 'policy'),
    ('EMR 사용자 매뉴얼.pdf', 'application/pdf', 'manual'),
    ('휴가신청서 양식.hwp', 'application/x-hwp', 'template'),
    ('12월 공지사항.png', 'image/png', 'announcement'),
    ('계약서.pdf', 'application/pdf', 'form'),
    ('memo.txt', 'text/plain', 'form'),
    ('photo.jpg', 'image/jpeg', 'other'),
])
def test_derive_category(name, mime, expected):
    assert derive_category(name, mime) == expected


def test_file_kind():
    assert file_kind('image/png') == 'image'
    assert file_kind('application/pdf') == 'pdf'
    assert file_kind('application/vnd.openxmlformats-officedocument.spreadsheetml.sheet') == 'spreadsheet'
    assert file_kind('application/msword') == 'document'
    assert file_kind('application/zip') == 'archive'
    assert file_kind('') == 'other'


def test_stats_and_category_counts():
    files = [
        File(original_filename='규정.pdf', mime_type='application/pdf', file_size=10, permissions={'public': True}),
        File(original_filename='a.png', mime_type='image/png', file_size=5, permissions={}),
        File(original_filename='b.png', mime_type='image/png', file_size=5, category='manual'),
    ]
    stats = file_stats(files)
    assert stats['total'] == 3 and stats['totalSize'] == 20
    assert stats['public'] == 1 and stats['private'] == 2
    assert stats['byKind']['image'] == 2 and stats['byKind']['pdf'] == 1
    counts = category_counts(files)
    assert counts['policy'] == 1 and counts['manual'] == 1 and counts['other'] == 1
    assert counts['all'] == 3


def _upload(client, name='보고서.pdf', content=b'%PDF-1.4 test', ctype='application/pdf', **extra):
    data = {'file': SimpleUploadedFile(name, content, content_type=ctype), **extra}
    return client.post(reverse('files'), data, format='multipart')


@pytest.mark.django_db
def test_upload_notifies_listed_employees(staff, manager, make_employee, org, client_for):
    colleague = make_employee(org)
    perms = json.dumps({'public': False, 'employees': [str(colleague.id), str(staff.id)]})
    r = _upload(client_for(staff), permissions=perms, description='분기 보고서')
    assert r.status_code == 201, r.data
    data = r.data['data']
    assert data['originalFilename'] == '보고서.pdf'
    assert data['kind'] == 'pdf' and data['category'] == 'form'
    assert data['permissions']['employees'] == [str(colleague.id), str(staff.id)]
    notified = list(Notification.objects.filter(type='file').values_list('user_id', flat=True))
    assert notified == [colleague.id]


@pytest.mark.django_db
def test_upload_rejects_disallowed_type_and_size(staff, client_for, settings):
    c = client_for(staff)
    r = _upload(c, name='run.exe', ctype='application/x-msdownload')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'unsupported_type'
    settings.UPLOAD_MAX_MB = 0
    r = _upload(c)
    assert r.data['error']['code'] == 'file_too_large'


@pytest.mark.django_db
def test_visibility_rules(org, dept, staff, manager, make_employee, client_for):
    outsider = make_employee(org)
    same_dept = make_employee(org, department=dept)
    r = _upload(client_for(staff), permissions=json.dumps({'departments': [str(dept.id)]}))
    file_id = r.data['data']['id']

    assert client_for(same_dept).get(reverse('file-detail', args=[file_id])).status_code == 200
    assert client_for(manager).get(reverse('file-detail', args=[file_id])).status_code == 200
    assert client_for(outsider).get(reverse('file-detail', args=[file_id])).status_code == 404
    listed = client_for(outsider).get(reverse('files')).data['data']
    assert listed == []


@pytest.mark.django_db
def test_download_and_delete(staff, make_employee, org, client_for):
    c = client_for(staff)
    file_id = _upload(c, permissions=json.dumps({'public': True})).data['data']['id']
    other = client_for(make_employee(org))

    resp = other.get(reverse('file-download', args=[file_id]))
    assert resp.status_code == 200
    assert b''.join(resp.streaming_content) == b'%PDF-1.4 test'

    assert other.delete(reverse('file-detail', args=[file_id])).status_code == 403
    assert c.delete(reverse('file-detail', args=[file_id])).status_code == 200
    assert not File.objects.filter(id=file_id).exists()


@pytest.mark.django_db
def test_share_notifies_only_new_employees(staff, make_employee, org, client_for):
    first, second = make_employee(org), make_employee(org)
    c = client_for(staff)
    file_id = _upload(c, permissions=json.dumps({'employees': [str(first.id)]})).data['data']['id']
    Notification.objects.all().delete()

    r = c.post(reverse('file-share', args=[file_id]),
               {'permissions': {'employees': [str(first.id), str(second.id)]}}, format='json')
    assert r.status_code == 200
    assert list(Notification.objects.values_list('user_id', flat=True)) == [second.id]


@pytest.mark.django_db
def test_documents_filter_by_category(staff, client_for):
    c = client_for(staff)
    _upload(c, name='병원 운영 규정.pdf', permissions=json.dumps({'public': True}))
    _upload(c, name='장비 매뉴얼.pdf')
    _upload(c, name='사진.png', content=b'png', ctype='image/png', category='announcement')

    r = c.get(reverse('documents'), {'category': 'policy'})
    assert [d['originalFilename'] for d in r.data['data']] == ['병원 운영 규정.pdf']
    counts = c.get(reverse('documents-stats')).data['data']
    assert counts['policy'] == 1 and counts['manual'] == 1 and counts['announcement'] == 1
    assert counts['all'] == 3
