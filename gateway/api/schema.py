# gateway/api/schema.py
"""
GraphQL SDL exported as a Python string named type_defs.
Field names are camelCase here; make_executable_schema converts them to
the snake_case attributes of the model rows.
"""

type_defs = """
schema {
  query: Query
  mutation: Mutation
  subscription: Subscription
}

enum Role {
  DIRECTOR
  MANAGER
  TEACHER
  CAMPUS
}

enum ParentRelationship {
  FATHER
  MOTHER
  GUARDIAN
}

type User {
  id: ID!
  username: String!
  email: String!
  role: Role!
}

type Student {
  id: ID!
  fullName: String!
  email: String!
  school: String
  phoneNumber: String
  parentName: String
  parentEmail: String
  parentPhoneNumber: String
  parentRelationship: ParentRelationship
  remark: String
  createdBy: User
}

type AuthPayload {
  token: String!
  user: User!
}

input StudentInput {
  fullName: String!
  email: String!
  school: String
  phoneNumber: String
  parentName: String
  parentEmail: String
  parentPhoneNumber: String
  parentRelationship: ParentRelationship
  remark: String
}

type Query {
  ping: String!
  me: User
  user(id: ID!): User
  users: [User!]!
  student(id: ID!): Student
  students: [Student!]!
}

type Mutation {
  signUp(username: String!, email: String!, password: String!, role: Role = TEACHER): AuthPayload!
  signIn(email: String!, password: String!): AuthPayload!
  createStudent(input: StudentInput!): Student!
}

type Subscription {
  studentCreated(mine: Boolean = false): Student!
}
"""
