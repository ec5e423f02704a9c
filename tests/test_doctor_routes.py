from datetime import datetime

from medical_portal.services.assignment_store import AssignmentStore


def test_rooms_lists_patient_rooms_sorted(client, docspace):
    docspace.rooms = [
        {'id': 2, 'title': 'Zoe Adams - Patient Room', 'webUrl': 'https://docspace.test/rooms/2'},
        {'id': 1, 'title': 'Medical Room'},
        {'id': 3, 'title': 'anna Brown - Patient Room'},
    ]

    body = client.get('/api/doctor/rooms').get_json()

    assert body['rooms'] == [
        {'id': 3, 'title': 'anna Brown - Patient Room', 'patientName': 'anna Brown', 'url': None},
        {'id': 2, 'title': 'Zoe Adams - Patient Room', 'patientName': 'Zoe Adams', 'url': 'https://docspace.test/rooms/2'},
    ]


def test_request_records_assignment_with_fill_out_link(client, docspace):
    docspace.rooms = [{'id': 'room-7', 'title': 'John Smith - Patient Room'}]
    docspace.files['tpl-1'] = {'id': 'tpl-1', 'title': 'Consent Form.pdf'}
    docspace.fill_out_links['tpl-1'] = {'shareLink': 'https://docspace.test/doc?share=fill', 'title': 'Fill out'}

    response = client.post('/api/doctor/rooms/room-7/fill-sign/request', json={'fileId': 'tpl-1'})

    assert response.status_code == 200
    body = response.get_json()
    [item] = body['files']
    assert item['openUrl'] == 'https://docspace.test/doc?share=fill'
    assert item['title'] == 'Consent Form.pdf'
    assert body['patientRoomId'] == 'room-7'
    assert body['source'] == 'assignments'

    stored = AssignmentStore.get(item['assignmentId'])
    assert stored.patient_name == 'John Smith'
    assert stored.requested_by == 'doctor@clinic.test'
    assert stored.medical_room_id == 'forms-room'
    assert stored.share_token == 'fill'
    assert docspace.created_links == []


def test_request_creates_read_write_link_when_none_exists(client, docspace):
    docspace.files['tpl-1'] = {'id': 'tpl-1', 'title': 'Consent Form.pdf'}

    body = client.post('/api/doctor/rooms/room-7/fill-sign/request', json={'fileId': 'tpl-1'}).get_json()

    assert docspace.created_links == [('tpl-1', 'ReadWrite')]
    assert body['files'][0]['openUrl'] == 'https://docspace.test/s/ext-tpl-1'


def test_request_fails_without_any_link(client, docspace):
    docspace.files['tpl-1'] = {'id': 'tpl-1', 'title': 'Consent Form.pdf'}
    docspace.link_creation_fails = True

    response = client.post('/api/doctor/rooms/room-7/fill-sign/request', json={'fileId': 'tpl-1'})

    assert response.status_code == 500
    assert response.get_json()['error'] == 'Unable to obtain public link to fill out'
    assert AssignmentStore.list_for_room('room-7') == []


def test_request_unknown_template_is_404(client):
    response = client.post('/api/doctor/rooms/room-7/fill-sign/request', json={'fileId': 'missing'})

    assert response.status_code == 404
    assert response.get_json()['error'] == 'Template not found'


def test_request_requires_file_id(client):
    response = client.post('/api/doctor/rooms/room-7/fill-sign/request', json={'fileId': '  '})

    assert response.status_code == 400


def test_room_contents_use_room_title_as_patient_name(client, docspace):
    docspace.rooms = [{'id': 'room-7', 'title': 'John Smith - Patient Room'}]
    docspace.add_folder('complete', 'done-consent', 'Consent Form')
    docspace.add_file('done-consent', 'f-1', 'John Smith - Consent Form', created='2024-01-02T00:00:00.000Z')
    done = AssignmentStore.record_assignment('room-7', 'tpl-1', 'https://docspace.test/s/sent-1',
                                             template_title='Consent Form.pdf', created_at=datetime(2024, 1, 1))

    completed = client.get('/api/doctor/rooms/room-7/fill-sign/contents?tab=completed').get_json()
    action = client.get('/api/doctor/rooms/room-7/fill-sign/contents').get_json()

    assert [i['assignmentId'] for i in completed['contents']['items']] == [done.id]
    assert completed['contents']['items'][0]['instanceFileId'] == 'f-1'
    assert action['contents']['items'] == []


def test_template_files_listed_from_templates_folder(client, docspace):
    docspace.add_folder('templates', 'nested', 'Archive')
    docspace.add_file('templates', 'tpl-1', 'Consent Form.pdf')

    body = client.get('/api/doctor/templates/files').get_json()

    assert body['folderId'] == 'templates'
    assert [f['id'] for f in body['files']] == ['tpl-1']


def test_template_files_fall_back_to_forms_room(client, docspace):
    docspace.parents['templates'] = None
    docspace.add_file('forms-room', 'tpl-2', 'Intake.pdf')

    body = client.get('/api/doctor/templates/files').get_json()

    assert body['folderId'] == 'forms-room'
    assert [f['id'] for f in body['files']] == ['tpl-2']


def test_unknown_route_returns_json_404(client):
    response = client.get('/api/does-not-exist')

    assert response.status_code == 404
    assert response.get_json() == {'error': 'Not found', 'details': None, 'status': 404}


def test_room_contents_survive_room_lookup_failure(client, docspace):
    docspace.failing_rooms.add('room-7')
    docspace.add_folder('complete', 'done-consent', 'Consent Form')
    docspace.add_file('done-consent', 'f-1', 'John Smith - Consent Form', created='2024-01-02T00:00:00.000Z')
    sent = AssignmentStore.record_assignment('room-7', 'tpl-1', 'https://docspace.test/s/sent-1',
                                             template_title='Consent Form.pdf')

    response = client.get('/api/doctor/rooms/room-7/fill-sign/contents')

    assert response.status_code == 200
    [item] = response.get_json()['contents']['items']
    assert item['assignmentId'] == sent.id
    assert item['status'] == 'action'
    assert item['openUrl'] == 'https://docspace.test/s/sent-1'
    assert docspace.listed == []


def test_request_recorded_when_room_lookup_fails(client, docspace):
    docspace.failing_rooms.add('room-7')
    docspace.files['tpl-1'] = {'id': 'tpl-1', 'title': 'Consent Form.pdf'}

    response = client.post('/api/doctor/rooms/room-7/fill-sign/request', json={'fileId': 'tpl-1'})

    assert response.status_code == 200
    assert response.get_json()['room'] is None
    [stored] = AssignmentStore.list_for_room('room-7')
    assert stored.patient_name is None
    assert stored.share_link == 'https://docspace.test/s/ext-tpl-1'


def test_room_summary(client, docspace):
    body = client.get('/api/doctor/rooms/room-7/summary').get_json()

    assert body['summary'] == [{'id': 'f1', 'title': 'Documents', 'filesCount': 2, 'foldersCount': 0}]


def test_room_folder_contents_by_title(client, docspace):
    docspace.folders_by_title = {('room-7', 'lab results'): {'id': 'labs', 'title': 'Lab Results'}}
    docspace.add_file('labs', 'f-9', 'CBC.pdf')

    body = client.get('/api/doctor/rooms/room-7/folder-contents', query_string={'title': 'Lab results'}).get_json()

    assert body['folder'] == {'id': 'labs', 'title': 'Lab Results'}
    assert [item['id'] for item in body['contents']['items']] == ['f-9']


def test_room_folder_contents_falls_back_to_summary(client, docspace):
    docspace.add_file('f1', 'f-3', 'Referral.pdf')

    body = client.get('/api/doctor/rooms/room-7/folder-contents?title=docu').get_json()

    assert body['folder'] == {'id': 'f1', 'title': 'Documents'}
    assert [item['id'] for item in body['contents']['items']] == ['f-3']


def test_room_folder_contents_errors(client):
    assert client.get('/api/doctor/rooms/room-7/folder-contents').status_code == 400

    response = client.get('/api/doctor/rooms/room-7/folder-contents?title=Imaging')

    assert response.status_code == 404
    assert response.get_json()['error'] == 'Folder not found: Imaging'
