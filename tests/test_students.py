from bson import ObjectId


def jane(**overrides):
    data = {"name": "Jane Doe", "student_id": "STU100", "class": "form1a", "email": "jane@student.mbizo.ac.zw"}
    data.update(overrides)
    return data


def test_create_student_with_account(client, mongo_db, staff_headers):
    response = client.post("/api/students", json=jane(), headers=staff_headers)

    assert response.status_code == 201
    student = response.json()
    assert student["class_code"] == "form1a"
    assert (student["attendance"], student["performance"], student["status"]) == (100, 75, "present")
    assert student["user_name"] == "Jane Doe"

    user = mongo_db["user"].find_one({"_id": ObjectId(student["user"])})
    assert user["username"] == "stu100"
    assert user["role"] == "student"


def test_create_duplicate_student_in_class(client, mongo_db, staff_headers):
    """Same (name, class) twice is rejected"""
    assert client.post("/api/students", json=jane(), headers=staff_headers).status_code == 201

    response = client.post("/api/students", json=jane(student_id="STU101"), headers=staff_headers)

    assert response.status_code == 400
    assert mongo_db["student"].count_documents({"name": "Jane Doe", "class_code": "form1a"}) == 1
    assert mongo_db["user"].count_documents({"role": "student"}) == 1


def test_same_name_in_other_class_allowed(client, staff_headers):
    client.post("/api/students", json=jane(), headers=staff_headers)
    response = client.post("/api/students", json=jane(student_id="STU101", **{"class": "form1b"}),
                           headers=staff_headers)
    assert response.status_code == 201


def test_create_student_duplicate_student_id(client, staff_headers):
    client.post("/api/students", json=jane(), headers=staff_headers)
    response = client.post("/api/students", json=jane(name="John Doe"), headers=staff_headers)
    assert response.status_code == 400


def test_create_student_missing_field(client, mongo_db, staff_headers):
    response = client.post("/api/students", json={"name": "", "student_id": "STU1", "class": "form1a"},
                           headers=staff_headers)
    assert response.status_code == 400
    assert mongo_db["student"].count_documents({}) == 0


def test_create_student_unknown_class(client, mongo_db, staff_headers):
    response = client.post("/api/students", json=jane(**{"class": "form5a"}), headers=staff_headers)
    assert response.status_code == 400
    assert mongo_db["user"].count_documents({"role": "student"}) == 0


def test_list_class_in_insertion_order(client, staff_headers):
    for name, sid in [("Tinashe", "S1"), ("Farai", "S2"), ("Chipo", "S3")]:
        client.post("/api/students", json={"name": name, "student_id": sid, "class": "l6"}, headers=staff_headers)
    client.post("/api/students", json={"name": "Other", "student_id": "S4", "class": "u6"}, headers=staff_headers)

    response = client.get("/api/students/l6", headers=staff_headers)

    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == ["Tinashe", "Farai", "Chipo"]


def test_mark_attendance_rejects_unknown_status(client, mongo_db, staff_headers):
    student = client.post("/api/students", json=jane(), headers=staff_headers).json()

    response = client.put(f"/api/students/{student['id']}/attendance", json={"status": "sick"},
                          headers=staff_headers)

    assert response.status_code == 400
    assert mongo_db["student"].find_one({"_id": ObjectId(student["id"])})["status"] == "present"


def test_mark_attendance_is_idempotent(client, mongo_db, staff_headers):
    student = client.post("/api/students", json=jane(), headers=staff_headers).json()
    url = f"/api/students/{student['id']}/attendance"

    first = client.put(url, json={"status": "absent"}, headers=staff_headers).json()
    second = client.put(url, json={"status": "absent"}, headers=staff_headers).json()

    assert first == second
    assert second["status"] == "absent"
    assert mongo_db["student"].count_documents({"name": "Jane Doe"}) == 1


def test_mark_attendance_unknown_student(client, staff_headers):
    response = client.put(f"/api/students/{ObjectId()}/attendance", json={"status": "late"},
                          headers=staff_headers)
    assert response.status_code == 404


def test_update_student_propagates_to_account(client, mongo_db, staff_headers):
    student = client.post("/api/students", json=jane(), headers=staff_headers).json()

    response = client.put(
        f"/api/students/{student['id']}",
        json={"name": "Jane Moyo", "class": "form2a", "performance": 88},
        headers=staff_headers,
    )

    assert response.status_code == 200
    updated = response.json()
    assert (updated["name"], updated["class_code"], updated["performance"]) == ("Jane Moyo", "form2a", 88)
    assert updated["attendance"] == 100
    user = mongo_db["user"].find_one({"_id": ObjectId(student["user"])})
    assert (user["name"], user["class_code"]) == ("Jane Moyo", "form2a")


def test_update_student_rejects_out_of_range(client, staff_headers):
    student = client.post("/api/students", json=jane(), headers=staff_headers).json()
    response = client.put(f"/api/students/{student['id']}", json={"attendance": 120}, headers=staff_headers)
    assert response.status_code == 400


def test_update_missing_student(client, staff_headers):
    response = client.put(f"/api/students/{ObjectId()}", json={"name": "Nobody"}, headers=staff_headers)
    assert response.status_code == 404
    assert response.json() == {"message": "Student not found"}


def test_delete_student_removes_account(client, mongo_db, staff_headers, admin_headers):
    """Deleting a student record deletes its linked user too"""
    student = client.post("/api/students", json=jane(), headers=staff_headers).json()

    response = client.delete(f"/api/students/{student['id']}", headers=staff_headers)

    assert response.status_code == 200
    assert client.get(f"/api/students/{student['id']}", headers=staff_headers).status_code == 404
    assert client.get(f"/api/users/{student['user']}", headers=admin_headers).status_code == 404
    assert mongo_db["user"].count_documents({"role": "student"}) == 0


def test_delete_missing_student(client, staff_headers):
    assert client.delete(f"/api/students/{ObjectId()}", headers=staff_headers).status_code == 404
    assert client.delete("/api/students/not-an-id", headers=staff_headers).status_code == 404


def test_read_student_by_id(client, staff_headers):
    student = client.post("/api/students", json=jane(), headers=staff_headers).json()
    response = client.get(f"/api/students/{student['id']}", headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Jane Doe"


def test_list_all_students_newest_first(client, staff_headers):
    for name, sid, code in [("First", "S1", "form1a"), ("Second", "S2", "form2b"), ("Third", "S3", "l6")]:
        client.post("/api/students", json={"name": name, "student_id": sid, "class": code}, headers=staff_headers)

    response = client.get("/api/students", headers=staff_headers)

    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == ["Third", "Second", "First"]
